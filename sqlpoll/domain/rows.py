"""
Row mapping: one result row -> one generic Object keyed by column name.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlpoll.domain.models import QueryResult
from sqlpoll.domain.values import GenericValue, normalize_value
from sqlpoll.errors import NormalizationError
from sqlpoll.utils.logging import get_logger

log = get_logger(__name__)


class RowMapper:
    """
    Map driver rows into generic objects, degrading bad columns to None.

    A column that fails normalization becomes None for that row only. Each
    such failure is counted in `failures` and logged so the data loss is
    observable.
    """

    def __init__(self, source: Optional[str] = None) -> None:
        self.source = source
        self.failures = 0

    def map_row(self, columns: Sequence[str], values: Sequence[Any]) -> Dict[str, GenericValue]:
        """
        Build an Object from ordered column names and values.

        Column names are used verbatim; a duplicate name overwrites the earlier
        entry.
        """
        mapped: Dict[str, GenericValue] = {}
        for column, value in zip(columns, values):
            try:
                mapped[column] = normalize_value(column, value)
            except NormalizationError as exc:
                self.failures += 1
                log.warning(
                    f"Column degraded to null: {exc}",
                    extra={"source": self.source, "column": column, "reason": exc.reason},
                )
                mapped[column] = None
        return mapped

    def map_rows(self, result: QueryResult) -> List[Dict[str, GenericValue]]:
        return [self.map_row(result.columns, row) for row in result.rows]


__all__ = ["RowMapper"]
