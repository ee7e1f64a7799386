"""
Export Service - Package the valid subset of a table.

Only rows without validation errors are exported, with bookkeeping keys
stripped. Three artifacts are available: CSV, JSON, and a ZIP bundle
holding both.
"""

import csv
import io
import json
import logging
import zipfile
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from services.mapping_service import public_fields
from services.validation_service import is_row_valid

logger = logging.getLogger(__name__)

CSV_FILENAME = 'valid-rows.csv'
JSON_FILENAME = 'valid-rows.json'
ZIP_FILENAME = 'valid-data.zip'

EXPORT_FORMATS = {
    'csv': (CSV_FILENAME, 'text/csv'),
    'json': (JSON_FILENAME, 'application/json'),
    'zip': (ZIP_FILENAME, 'application/zip'),
}


def valid_rows(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Error-free rows with bookkeeping keys removed."""
    return [public_fields(row) for row in rows if is_row_valid(row)]


def to_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """
    Serialize rows as CSV.

    The header is the union of all keys in first-seen order; a row lacking
    a column gets an empty cell. No rows gives an empty string.
    """
    if not rows:
        return ''

    fieldnames: List[str] = []
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fieldnames, restval='', lineterminator='\r\n')
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def to_json(rows: Sequence[Mapping[str, Any]]) -> str:
    return json.dumps(list(rows), indent=2, ensure_ascii=False)


def to_zip(rows: Sequence[Mapping[str, Any]]) -> bytes:
    """Bundle the CSV and JSON exports into one deflated archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(CSV_FILENAME, to_csv(rows))
        archive.writestr(JSON_FILENAME, to_json(rows))
    return buffer.getvalue()


def export_rows(rows: Sequence[Mapping[str, Any]], fmt: str) -> Tuple[bytes, str, str]:
    """
    Export the valid subset of a table.

    Args:
        rows: Validated rows (invalid ones are skipped)
        fmt: 'csv', 'json' or 'zip'

    Returns:
        (payload bytes, download filename, media type)
    """
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")

    exported = valid_rows(rows)
    filename, media_type = EXPORT_FORMATS[fmt]

    if fmt == 'csv':
        payload = to_csv(exported).encode('utf-8')
    elif fmt == 'json':
        payload = to_json(exported).encode('utf-8')
    else:
        payload = to_zip(exported)

    logger.info(f"Exported {len(exported)}/{len(rows)} rows as {fmt} ({len(payload)} bytes)")
    return payload, filename, media_type
