from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, Mapping, MutableMapping, Optional, Tuple

from relational.errors import UnsupportedValueError


SUPPORTED_VALUE_TYPES: Tuple[type, ...] = (
    bool,
    int,
    float,
    Decimal,
    str,
    bytes,
    bytearray,
    memoryview,
    datetime.date,
    datetime.datetime,
    datetime.time,
    uuid.UUID,
)


def check_value(value: Any, column: str) -> Any:
    if value is None or isinstance(value, SUPPORTED_VALUE_TYPES):
        return value
    raise UnsupportedValueError(f"Unsupported value type {type(value).__name__} for column {column!r}")


class Row(MutableMapping[str, Any]):
    """Ordered column -> value mapping; keys compare case-insensitively.

    The first spelling of a key is kept for iteration, so ``Row(ID=1)["id"]``
    returns 1 and ``list(Row(ID=1))`` yields ``["ID"]``.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, Any] | Iterable[Tuple[str, Any]]] = None, **kwargs: Any):
        self._data: Dict[str, Tuple[str, Any]] = {}
        if data is not None:
            self.update(data)
        if kwargs:
            self.update(kwargs)

    def __getitem__(self, key: str) -> Any:
        return self._data[key.casefold()][1]

    def __setitem__(self, key: str, value: Any) -> None:
        folded = key.casefold()
        existing = self._data.get(folded)
        self._data[folded] = (existing[0] if existing else key, value)

    def __delitem__(self, key: str) -> None:
        del self._data[key.casefold()]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._data.values())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        if len(other) != len(self):
            return False
        for key, value in other.items():
            if key not in self or self[key] != value:
                return False
        return True

    def __repr__(self) -> str:
        return f"Row({dict(self.items())!r})"

    def copy(self) -> "Row":
        return Row(self.items())
