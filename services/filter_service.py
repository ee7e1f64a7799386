"""
Filter Service - Search, filter and sort validated rows for display.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from services.mapping_service import public_fields, stringify
from services.validation_service import is_row_dirty, is_row_valid

logger = logging.getLogger(__name__)

ALL_PRIORITIES = 'all'


@dataclass
class RowFilter:
    """
    Display filters for a table.

    All criteria are combined with AND. Text matching is a case-insensitive
    substring test; empty criteria match everything.
    """

    search: str = ''
    priority: str = ALL_PRIORITIES
    only_valid: bool = False
    only_dirty: bool = False
    column_filters: Dict[str, str] = field(default_factory=dict)
    sort_by: Optional[str] = None
    descending: bool = False

    def matches(self, row: Mapping[str, Any]) -> bool:
        values = public_fields(row)

        if self.search:
            needle = self.search.lower()
            if not any(needle in stringify(value).lower() for value in values.values()):
                return False

        if self.priority and self.priority != ALL_PRIORITIES:
            if stringify(row.get('PriorityLevel')).strip() != self.priority.strip():
                return False

        if self.only_valid and not is_row_valid(row):
            return False

        if self.only_dirty and not is_row_dirty(row):
            return False

        for column, text in self.column_filters.items():
            if text and text.lower() not in stringify(row.get(column)).lower():
                return False

        return True


def filter_rows(rows: Sequence[Mapping[str, Any]], row_filter: RowFilter) -> List[Mapping[str, Any]]:
    """Apply a RowFilter, then its sort order if one is set."""
    matched = [row for row in rows if row_filter.matches(row)]

    if row_filter.sort_by:
        column = row_filter.sort_by
        # Ties keep upload order in both directions
        matched.sort(
            key=lambda row: stringify(row.get(column)).lower(),
            reverse=row_filter.descending
        )

    logger.debug(f"Filter kept {len(matched)}/{len(rows)} rows")
    return matched
