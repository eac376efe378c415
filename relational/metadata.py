from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class ColumnMetadata:
    name: str
    data_type: str = "text"
    udt_name: str = ""
    is_nullable: bool = True
    is_primary_key: bool = False
    is_identity: bool = False
    has_default: bool = False
    ordinal_position: int = 0


@dataclass(frozen=True)
class ForeignKey:
    name: str
    table: str
    columns: Tuple[str, ...]
    referenced_table: str
    referenced_columns: Tuple[str, ...]


@dataclass(frozen=True)
class TableMetadata:
    name: str
    columns: Tuple[ColumnMetadata, ...]
    primary_key: Tuple[str, ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = field(default_factory=tuple)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(col.name for col in self.columns)

    @property
    def identity_column(self) -> Optional[ColumnMetadata]:
        return next((col for col in self.columns if col.is_identity), None)

    def find_column(self, name: str) -> Optional[ColumnMetadata]:
        folded = name.casefold()
        return next((col for col in self.columns if col.name.casefold() == folded), None)
