from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from relational.criteria import And, Criteria


@dataclass(frozen=True)
class Join:
    table: str
    kind: str = "INNER"


@dataclass(frozen=True)
class Query:
    """Table query with optional filter, projection, ordering, paging and FK-inferred joins.

    Every refinement returns a new ``Query``; instances are never mutated.
    """

    table: str
    criteria: Optional[Criteria] = None
    columns: Optional[Tuple[str, ...]] = None
    order: Tuple[Tuple[str, bool], ...] = ()
    offset: Optional[int] = None
    limit: Optional[int] = None
    joins: Tuple[Join, ...] = ()

    def where(self, criteria: Criteria) -> "Query":
        combined = criteria if self.criteria is None else And(self.criteria, criteria)
        return replace(self, criteria=combined)

    def select(self, *columns: str) -> "Query":
        return replace(self, columns=tuple(columns) or None)

    def order_by(self, column: str, descending: bool = False) -> "Query":
        return replace(self, order=self.order + ((column, descending),))

    def skip(self, count: int) -> "Query":
        if count < 0:
            raise ValueError("skip count must not be negative")
        return replace(self, offset=count)

    def take(self, count: int) -> "Query":
        if count < 0:
            raise ValueError("take count must not be negative")
        return replace(self, limit=count)

    def join(self, table: str, kind: str = "INNER") -> "Query":
        kind = kind.strip().upper()
        if kind not in {"INNER", "LEFT"}:
            raise ValueError(f"Unsupported join kind: {kind}")
        return replace(self, joins=self.joins + (Join(table, kind),))
