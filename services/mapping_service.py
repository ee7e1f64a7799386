"""
Mapping Service - Project source columns onto the target schema.

The target schema is fixed: every uploaded table is mapped onto
EXPECTED_FIELDS, whatever the source headers are called.
"""

import logging
from typing import Any, Dict, List, Mapping, Sequence

from services.exceptions import InvalidMappingError

logger = logging.getLogger(__name__)

EXPECTED_FIELDS = ('ClientID', 'PriorityLevel', 'AttributesJSON')

# Bookkeeping keys stored alongside row data, never exported or edited
ROW_ID_KEY = '__row_id'
ERRORS_KEY = '__errors'
DIRTY_KEY = '__dirty'
INTERNAL_KEYS = (ROW_ID_KEY, ERRORS_KEY, DIRTY_KEY)


def stringify(value: Any) -> str:
    """
    Text form of a cell value, as shown to users and compared by rules.

    Integral floats lose their trailing '.0' so an XLSX cell holding 3.0
    compares equal to the CSV text '3'.
    """
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def default_mapping(headers: Sequence[str]) -> Dict[str, str]:
    """
    Build the initial mapping for freshly uploaded headers.

    Each target field maps to the header of the same name when present,
    otherwise to the first header.
    """
    if not headers:
        return {}
    return {
        target: target if target in headers else headers[0]
        for target in EXPECTED_FIELDS
    }


def validate_mapping(mapping: Mapping[str, str], headers: Sequence[str]) -> Dict[str, str]:
    """
    Check a user supplied mapping against the uploaded headers.

    Returns:
        Plain dict copy of the mapping

    Raises:
        InvalidMappingError: Unknown target field or source header
    """
    unknown_targets = [target for target in mapping if target not in EXPECTED_FIELDS]
    if unknown_targets:
        raise InvalidMappingError(
            f"Unknown target field(s): {', '.join(unknown_targets)}. "
            f"Expected: {', '.join(EXPECTED_FIELDS)}"
        )

    unknown_sources = sorted({source for source in mapping.values() if source not in headers})
    if unknown_sources:
        raise InvalidMappingError(f"Unknown source column(s): {', '.join(unknown_sources)}")

    return dict(mapping)


def map_row(row: Mapping[str, Any], mapping: Mapping[str, str]) -> Dict[str, Any]:
    """Copy the row and fill each target field from its mapped source column."""
    mapped = dict(row)
    for target in EXPECTED_FIELDS:
        source = mapping.get(target)
        if source and source in row:
            mapped[target] = row[source]
    return mapped


def map_rows(raw_rows: Sequence[Mapping[str, Any]], mapping: Mapping[str, str]) -> List[Dict[str, Any]]:
    """Map every raw row, tagging each with its position in the upload."""
    mapped_rows = []
    for index, row in enumerate(raw_rows):
        mapped = map_row(row, mapping)
        mapped[ROW_ID_KEY] = index
        mapped_rows.append(mapped)

    logger.debug(f"Mapped {len(mapped_rows)} rows with {mapping}")
    return mapped_rows


def public_fields(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Row data without bookkeeping keys."""
    return {key: value for key, value in row.items() if key not in INTERNAL_KEYS}
