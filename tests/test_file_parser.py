"""
Tests for CSV/XLSX upload parsing.
"""

import pytest

from services.exceptions import EmptyUploadError, FileParseError, UnsupportedFileTypeError
from services.file_parser_service import detect_file_type, parse_csv, parse_upload, parse_xlsx


class TestDetectFileType:
    """Test extension based format detection."""

    def test_supported_extensions(self):
        """Test that .csv and .xlsx are recognized case-insensitively."""
        assert detect_file_type('clients.csv') == 'csv'
        assert detect_file_type('CLIENTS.CSV') == 'csv'
        assert detect_file_type('report.final.xlsx') == 'xlsx'

    def test_unsupported_extensions(self):
        """Test that other files are rejected with the user-facing message."""
        for name in ('clients.xls', 'clients.txt', 'clients', ''):
            with pytest.raises(UnsupportedFileTypeError) as exc_info:
                detect_file_type(name)
            assert 'Please upload a .csv or .xlsx file' in str(exc_info.value)


class TestParseCsv:
    """Test CSV parsing."""

    def test_header_and_rows(self, clients_csv):
        """Test that the header row keys every data row and blank lines are skipped."""
        table = parse_csv(clients_csv)

        assert table.headers == ['ClientID', 'PriorityLevel', 'AttributesJSON', 'Name']
        assert len(table.rows) == 5
        assert table.rows[0] == {
            'ClientID': 'C1',
            'PriorityLevel': '3',
            'AttributesJSON': '{"tier": "gold"}',
            'Name': 'Acme'
        }
        assert table.rows[-1]['ClientID'] == 'C5'

    def test_short_and_long_rows(self):
        """Test that short rows are padded and surplus cells dropped."""
        table = parse_csv(b"a,b,c\n1\n1,2,3,4\n")

        assert table.rows == [
            {'a': '1', 'b': '', 'c': ''},
            {'a': '1', 'b': '2', 'c': '3'},
        ]

    def test_bom_and_latin1(self):
        """Test UTF-8 BOM removal and latin-1 fallback."""
        table = parse_csv('\ufeffname\nZo\u00eb\n'.encode('utf-8'))
        assert table.headers == ['name']
        assert table.rows[0]['name'] == 'Zoë'

        table = parse_csv('name\nZo\u00eb\n'.encode('latin-1'))
        assert table.rows[0]['name'] == 'Zoë'

    def test_duplicate_and_blank_headers(self):
        """Test that repeated headers are suffixed and blank ones skipped."""
        table = parse_csv(b"id,,id,id_1\n1,x,2,3\n")

        assert table.headers == ['id', 'id_1', 'id_1_1']
        assert table.rows[0] == {'id': '1', 'id_1': '2', 'id_1_1': '3'}

    def test_header_only(self):
        """Test that a header without data gives zero rows."""
        table = parse_csv(b"ClientID,PriorityLevel\n")
        assert table.headers == ['ClientID', 'PriorityLevel']
        assert table.rows == []

    def test_empty_file(self):
        """Test that a file without any header is rejected."""
        with pytest.raises(EmptyUploadError):
            parse_csv(b"")
        with pytest.raises(EmptyUploadError):
            parse_csv(b"\n\n,,\n")


class TestParseXlsx:
    """Test XLSX parsing."""

    def test_first_sheet(self, clients_xlsx):
        """Test header detection, empty rows and numeric cells."""
        table = parse_xlsx(clients_xlsx)

        assert table.headers == ['ClientID', 'PriorityLevel', 'AttributesJSON']
        assert len(table.rows) == 3
        assert table.rows[0] == {'ClientID': 'X1', 'PriorityLevel': 2, 'AttributesJSON': '{"a": 1}'}
        assert table.rows[1]['AttributesJSON'] == ''
        assert table.rows[2]['ClientID'] == 101

    def test_header_whitespace_is_trimmed(self, xlsx_builder):
        """Test that header cells are stripped."""
        table = parse_xlsx(xlsx_builder([[' ClientID ', 'PriorityLevel'], ['A', 1]]))
        assert table.headers == ['ClientID', 'PriorityLevel']

    def test_corrupt_workbook(self):
        """Test that non-workbook bytes raise FileParseError."""
        with pytest.raises(FileParseError):
            parse_xlsx(b"this is not a zip archive")

    def test_empty_workbook(self, xlsx_builder):
        """Test that a workbook without a header row is rejected."""
        with pytest.raises(EmptyUploadError):
            parse_xlsx(xlsx_builder([]))


class TestParseUpload:
    """Test parser dispatch."""

    def test_dispatch_by_extension(self, clients_csv, clients_xlsx):
        """Test that the extension picks the parser."""
        assert len(parse_upload('clients.csv', clients_csv).rows) == 5
        assert len(parse_upload('Clients.XLSX', clients_xlsx).rows) == 3

    def test_unsupported(self, clients_csv):
        """Test that the extension, not the content, decides."""
        with pytest.raises(UnsupportedFileTypeError):
            parse_upload('clients.json', clients_csv)
