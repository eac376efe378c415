from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple, Union

from relational.catalog import SchemaCatalog
from relational.criteria import match
from relational.errors import NoRelationError
from relational.finder import Finder, RowSequence
from relational.metadata import ForeignKey
from relational.row import Row


class RelationResolver:
    """Navigates foreign keys between two tables, in either direction."""

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog

    def _relation(self, table_name: str, related_table_name: str) -> Tuple[Optional[ForeignKey], Optional[ForeignKey]]:
        table = self.catalog.get_table(table_name)
        related = self.catalog.get_table(related_table_name)
        to_one = next((fk for fk in table.foreign_keys if fk.referenced_table == related.name), None)
        to_many = next((fk for fk in related.foreign_keys if fk.referenced_table == table.name), None)
        return to_one, to_many

    def is_valid_relation(self, table_name: str, related_table_name: str) -> bool:
        to_one, to_many = self._relation(table_name, related_table_name)
        return to_one is not None or to_many is not None

    def find_related(
        self,
        finder: Finder,
        table_name: str,
        row: Mapping[str, Any],
        related_table_name: str,
    ) -> Union[RowSequence, Tuple[Row, ...], Optional[Row]]:
        """Rows of ``related_table_name`` linked to ``row``.

        A foreign key on ``row``'s own table gives the single parent row (or None);
        a foreign key on the related table gives every child row.
        """
        to_one, to_many = self._relation(table_name, related_table_name)
        values = Row(row)
        if to_one is not None:
            local = [values.get(col) for col in to_one.columns]
            if any(value is None for value in local):
                return None
            criteria = match(dict(zip(to_one.referenced_columns, local)))
            return finder.find_one(to_one.referenced_table, criteria)
        if to_many is not None:
            keys = [values.get(ref) for ref in to_many.referenced_columns]
            if any(value is None for value in keys):
                return ()
            criteria = match(dict(zip(to_many.columns, keys)))
            return finder.find(to_many.table, criteria)
        raise NoRelationError(table_name, related_table_name)
