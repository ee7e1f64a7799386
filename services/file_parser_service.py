"""
File Parser Service - Read uploaded CSV/XLSX payloads into rows.

Both formats produce the same shape: the ordered header list and one
dictionary per data row keyed by header. Cells are kept loosely typed;
CSV cells are always strings, XLSX cells keep their numeric type.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from services.exceptions import EmptyUploadError, FileParseError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

CSV_ENCODINGS = ('utf-8-sig', 'latin-1')


@dataclass
class ParsedTable:
    """Header row plus data rows of an uploaded file."""

    headers: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)


def detect_file_type(filename: str) -> str:
    """
    Get the upload format from the file extension.

    Raises:
        UnsupportedFileTypeError: If the extension is not .csv or .xlsx
    """
    ext = Path(filename or '').suffix.lower()
    if ext == '.csv':
        return 'csv'
    if ext == '.xlsx':
        return 'xlsx'
    raise UnsupportedFileTypeError(filename)


def parse_upload(filename: str, content: bytes) -> ParsedTable:
    """
    Parse an uploaded file.

    Args:
        filename: Original file name (used to pick the parser)
        content: Raw file bytes

    Returns:
        ParsedTable with headers and rows

    Raises:
        UnsupportedFileTypeError: Unknown extension
        FileParseError: File could not be decoded
        EmptyUploadError: File has no header row
    """
    file_type = detect_file_type(filename)

    if file_type == 'csv':
        table = parse_csv(content)
    else:
        table = parse_xlsx(content)

    logger.info(f"Parsed {filename}: {len(table.headers)} columns, {len(table.rows)} rows")
    return table


def parse_csv(content: bytes) -> ParsedTable:
    """Parse CSV bytes. The first non-blank line is the header."""
    text = _decode(content)
    reader = csv.reader(io.StringIO(text, newline=''))
    return _build_table(reader)


def parse_xlsx(content: bytes) -> ParsedTable:
    """Parse the first worksheet of an XLSX workbook."""
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as e:
        raise FileParseError(f"Could not read workbook: {e}") from e

    try:
        if not workbook.worksheets:
            raise EmptyUploadError("Workbook has no worksheets")
        sheet = workbook.worksheets[0]
        logger.debug(f"Reading worksheet '{sheet.title}'")
        values = (
            [_normalize_cell(value) for value in row]
            for row in sheet.iter_rows(values_only=True)
        )
        return _build_table(values)
    finally:
        workbook.close()


def _decode(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FileParseError("Could not decode CSV content")


def _normalize_cell(value: Any) -> Any:
    """Convert an openpyxl cell value to something JSON-serializable."""
    if value is None:
        return ''
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return value
    return str(value)


def _is_blank(row: Sequence[Any]) -> bool:
    return all(cell == '' or cell is None for cell in row)


def _build_table(rows: Iterable[Sequence[Any]]) -> ParsedTable:
    """Turn a stream of cell lists into a ParsedTable."""
    iterator = iter(rows)

    header_row: Optional[Sequence[Any]] = None
    for row in iterator:
        if not _is_blank(row):
            header_row = row
            break

    if header_row is None:
        raise EmptyUploadError("File contains no header row")

    columns = _header_columns(header_row)
    if not columns:
        raise EmptyUploadError("File contains no header row")

    headers = [name for _, name in columns]
    table = ParsedTable(headers=headers)

    for row in iterator:
        if _is_blank(row):
            continue
        record = {}
        for index, name in columns:
            record[name] = row[index] if index < len(row) else ''
        table.rows.append(record)

    return table


def _header_columns(header_row: Sequence[Any]) -> List[Tuple[int, str]]:
    """
    Get (column index, header name) pairs.

    Blank header cells are skipped; repeated names get a numeric suffix
    ("Name", "Name_1", ...) so no column is silently overwritten.
    """
    columns = []
    used = set()

    for index, raw in enumerate(header_row):
        base = str(raw).strip() if raw is not None else ''
        if not base:
            continue
        name = base
        suffix = 0
        while name in used:
            suffix += 1
            name = f"{base}_{suffix}"
        used.add(name)
        columns.append((index, name))

    return columns
