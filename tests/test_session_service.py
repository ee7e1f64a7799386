"""
Tests for upload sessions: creation, mapping, rules, edits and history.
"""

import hashlib
import io
import zipfile

import pytest

from backend.models.schema import UploadSession, ValidationRule
from services.exceptions import (
    EmptyUploadError, HistoryEmptyError, InvalidDatasetTypeError, InvalidEditError,
    InvalidMappingError, InvalidRuleError, RowNotFoundError, RuleNotFoundError,
    SessionNotFoundError, UnsupportedFileTypeError
)
from services.filter_service import RowFilter
from services.mapping_service import DIRTY_KEY, ERRORS_KEY, ROW_ID_KEY
from services.session_service import SessionService


def errors_by_row(upload):
    return [row[ERRORS_KEY] for row in upload.rows]


class TestCreateSession:
    """Test starting a session from an upload."""

    def test_csv_upload(self, service, clients_csv):
        """Test that the upload is parsed, mapped and validated."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        assert upload.id is not None
        assert upload.dataset_type == 'clients'
        assert upload.original_filename == 'clients.csv'
        assert upload.file_hash == hashlib.sha256(clients_csv).hexdigest()
        assert upload.headers == ['ClientID', 'PriorityLevel', 'AttributesJSON', 'Name']
        assert upload.mapping == {
            'ClientID': 'ClientID', 'PriorityLevel': 'PriorityLevel', 'AttributesJSON': 'AttributesJSON'
        }
        assert errors_by_row(upload) == [
            [],
            ['PriorityLevel 1-5'],
            ['Duplicate ClientID'],
            ['Missing ClientID', 'Bad JSON'],
            [],
        ]
        assert [row[ROW_ID_KEY] for row in upload.rows] == [0, 1, 2, 3, 4]
        assert upload.undo_stack == []
        assert upload.redo_stack == []
        assert upload.created_at is not None

    def test_xlsx_upload(self, service, clients_xlsx):
        """Test that spreadsheet numbers validate like their text form."""
        upload = service.create_session('clients', 'clients.xlsx', clients_xlsx)

        assert errors_by_row(upload) == [[], ['PriorityLevel 1-5'], ['Bad JSON']]
        assert upload.rows[2]['ClientID'] == 101

    def test_renamed_columns_default_to_first_header(self, service, renamed_csv):
        """Test that unmatched targets start mapped to the first column."""
        upload = service.create_session('tasks', 'tasks.csv', renamed_csv)

        assert upload.mapping == {'ClientID': 'id', 'PriorityLevel': 'id', 'AttributesJSON': 'id'}
        assert errors_by_row(upload) == [['PriorityLevel 1-5', 'Bad JSON']] * 2

    def test_rejected_uploads(self, service, clients_csv):
        """Test dataset type, file type and empty file errors."""
        with pytest.raises(InvalidDatasetTypeError):
            service.create_session('invoices', 'clients.csv', clients_csv)
        with pytest.raises(UnsupportedFileTypeError):
            service.create_session('clients', 'clients.txt', clients_csv)
        with pytest.raises(EmptyUploadError):
            service.create_session('clients', 'empty.csv', b'\n\n')

        assert service.session.query(UploadSession).count() == 0

    def test_header_only_upload(self, service):
        """Test that a file with headers but no data gives an empty table."""
        upload = service.create_session('workers', 'workers.csv', b'ClientID,PriorityLevel\n')

        assert upload.rows == []
        assert service.summary(upload.id)['total'] == 0


class TestSessionLookup:
    """Test get, list and delete."""

    def test_get_unknown(self, service):
        """Test that unknown ids raise."""
        with pytest.raises(SessionNotFoundError) as exc_info:
            service.get_session(999)
        assert exc_info.value.status_code == 404

    def test_list_newest_first(self, service, clients_csv, renamed_csv):
        """Test paging through sessions."""
        first = service.create_session('clients', 'a.csv', clients_csv)
        second = service.create_session('tasks', 'b.csv', renamed_csv)

        items, total = service.list_sessions()
        assert total == 2
        assert [item.id for item in items] == [second.id, first.id]

        items, total = service.list_sessions(offset=1, limit=1)
        assert total == 2
        assert [item.id for item in items] == [first.id]

    def test_delete_removes_rules(self, service, clients_csv):
        """Test that deleting a session deletes its rules."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)
        service.add_rule(upload.id, 'Name', 'contains', 'a')

        service.delete_session(upload.id)

        assert service.session.query(UploadSession).count() == 0
        assert service.session.query(ValidationRule).count() == 0
        with pytest.raises(SessionNotFoundError):
            service.delete_session(upload.id)


class TestMapping:
    """Test mapping changes."""

    def test_update_mapping_revalidates(self, service, renamed_csv):
        """Test that remapping rebuilds the table and keeps unspecified fields."""
        upload = service.create_session('clients', 'clients.csv', renamed_csv)

        upload = service.update_mapping(upload.id, {'PriorityLevel': 'prio', 'AttributesJSON': 'attrs'})

        assert upload.mapping == {'ClientID': 'id', 'PriorityLevel': 'prio', 'AttributesJSON': 'attrs'}
        assert errors_by_row(upload) == [[], []]
        assert upload.rows[1]['AttributesJSON'] == '{"x": 1}'
        assert len(upload.undo_stack) == 1

    def test_update_mapping_discards_edits(self, service, renamed_csv):
        """Test that edits do not survive a remap but can be restored with undo."""
        upload = service.create_session('clients', 'clients.csv', renamed_csv)
        service.edit_row(upload.id, 0, {'ClientID': 'EDITED'})

        upload = service.update_mapping(upload.id, {'PriorityLevel': 'prio'})
        assert upload.rows[0]['ClientID'] == 'A-1'
        assert DIRTY_KEY not in upload.rows[0]

        upload = service.undo(upload.id)
        assert upload.rows[0]['ClientID'] == 'EDITED'

    def test_invalid_mapping(self, service, renamed_csv):
        """Test that unknown targets and sources are refused without changes."""
        upload = service.create_session('clients', 'clients.csv', renamed_csv)

        with pytest.raises(InvalidMappingError):
            service.update_mapping(upload.id, {'ClientID': 'nope'})
        with pytest.raises(InvalidMappingError):
            service.update_mapping(upload.id, {'Region': 'id'})

        assert service.get_session(upload.id).undo_stack == []


class TestRules:
    """Test custom rule management."""

    def test_add_rule(self, service, clients_csv):
        """Test that a new rule is stored and applied after built-in checks."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        rule = service.add_rule(upload.id, 'Name', 'not contains', 'Glob', 'No Globex')

        assert rule.id is not None
        assert rule.message == 'No Globex'
        upload = service.get_session(upload.id)
        assert [r.id for r in upload.rules] == [rule.id]
        assert upload.rows[1][ERRORS_KEY] == ['PriorityLevel 1-5', 'No Globex']
        assert upload.rows[0][ERRORS_KEY] == []
        assert len(upload.undo_stack) == 1

    def test_rule_on_target_field(self, service, renamed_csv):
        """Test that target fields can be used even when not a header."""
        upload = service.create_session('clients', 'clients.csv', renamed_csv)
        service.add_rule(upload.id, 'ClientID', 'contains', 'B-')

        upload = service.get_session(upload.id)
        assert all('Custom validation failed.' in errors for errors in errors_by_row(upload))

    def test_rules_keep_edits(self, service, clients_csv):
        """Test that rule changes re-validate the current rows, edits included."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)
        service.edit_row(upload.id, 1, {'PriorityLevel': '4'})

        service.add_rule(upload.id, 'Name', 'equals', 'Acme', 'Only Acme')

        upload = service.get_session(upload.id)
        assert upload.rows[1]['PriorityLevel'] == '4'
        assert upload.rows[1][DIRTY_KEY] is True
        assert upload.rows[1][ERRORS_KEY] == ['Only Acme']

    @pytest.mark.parametrize('field,condition,value', [
        ('Region', 'equals', 'EU'),
        ('Name', 'matches', 'A.*'),
        ('Name', 'equals', ''),
    ])
    def test_invalid_rule(self, service, clients_csv, field, condition, value):
        """Test that malformed rules are refused."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        with pytest.raises(InvalidRuleError):
            service.add_rule(upload.id, field, condition, value)

    def test_remove_rule(self, service, clients_csv):
        """Test that removing a rule clears its messages."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)
        rule = service.add_rule(upload.id, 'Name', 'equals', 'Acme')

        upload = service.remove_rule(upload.id, rule.id)

        assert upload.rules == []
        assert upload.rows[1][ERRORS_KEY] == ['PriorityLevel 1-5']
        assert len(upload.undo_stack) == 2

        with pytest.raises(RuleNotFoundError):
            service.remove_rule(upload.id, rule.id)


class TestEditRow:
    """Test inline edits."""

    def test_edit_fixes_row(self, service, clients_csv):
        """Test that an edit marks the row dirty and re-validates it."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        row = service.edit_row(upload.id, 1, {'PriorityLevel': '2'})

        assert row[ROW_ID_KEY] == 1
        assert row['PriorityLevel'] == '2'
        assert row[DIRTY_KEY] is True
        assert row[ERRORS_KEY] == []
        assert service.summary(upload.id)['dirty'] == 1

    def test_edit_revalidates_other_rows(self, service, clients_csv):
        """Test that fixing a duplicate id also clears the later duplicate."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        service.edit_row(upload.id, 0, {'ClientID': 'C0'})

        upload = service.get_session(upload.id)
        assert upload.rows[2][ERRORS_KEY] == []
        assert DIRTY_KEY not in upload.rows[2]

    def test_edit_new_target_field(self, service, renamed_csv):
        """Test that target fields are editable and edits may add new errors."""
        upload = service.create_session('clients', 'clients.csv', renamed_csv)
        upload = service.update_mapping(upload.id, {'PriorityLevel': 'prio', 'AttributesJSON': 'attrs'})

        row = service.edit_row(upload.id, 1, {'ClientID': 'A-1'})

        assert row[ERRORS_KEY] == ['Duplicate ClientID']

    @pytest.mark.parametrize('changes', [
        {},
        {ERRORS_KEY: []},
        {'__anything': 'x'},
        {'Region': 'EU'},
    ])
    def test_invalid_edit(self, service, clients_csv, changes):
        """Test that empty, internal and unknown fields are refused."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        with pytest.raises(InvalidEditError):
            service.edit_row(upload.id, 0, changes)

    def test_unknown_row(self, service, clients_csv):
        """Test that unknown row ids raise."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        with pytest.raises(RowNotFoundError):
            service.edit_row(upload.id, 42, {'Name': 'x'})


class TestHistory:
    """Test undo/redo persisted across service instances."""

    def test_undo_redo(self, service, clients_csv, session):
        """Test that history survives a fresh service on the same database."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)
        service.edit_row(upload.id, 1, {'PriorityLevel': '2'})

        other = SessionService(db_session=session)
        upload = other.undo(upload.id)
        assert upload.rows[1]['PriorityLevel'] == '9'
        assert upload.rows[1][ERRORS_KEY] == ['PriorityLevel 1-5']
        assert upload.undo_stack == []
        assert len(upload.redo_stack) == 1

        upload = other.redo(upload.id)
        assert upload.rows[1]['PriorityLevel'] == '2'
        assert upload.redo_stack == []

    def test_empty_history(self, service, clients_csv):
        """Test that undo/redo on a fresh session raise."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        with pytest.raises(HistoryEmptyError):
            service.undo(upload.id)
        with pytest.raises(HistoryEmptyError):
            service.redo(upload.id)

    def test_history_limit(self, session, clients_csv):
        """Test that only the most recent snapshots are kept."""
        service = SessionService(db_session=session, history_limit=2)
        upload = service.create_session('clients', 'clients.csv', clients_csv)
        for value in ('a', 'b', 'c'):
            service.edit_row(upload.id, 0, {'Name': value})

        service.undo(upload.id)
        upload = service.undo(upload.id)
        assert upload.rows[0]['Name'] == 'a'
        with pytest.raises(HistoryEmptyError):
            service.undo(upload.id)


class TestQueryAndExport:
    """Test reading the current table."""

    def test_query_rows(self, service, clients_csv):
        """Test filtering through the service."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        assert len(service.query_rows(upload.id)) == 5
        rows = service.query_rows(upload.id, RowFilter(only_valid=True))
        assert [row['ClientID'] for row in rows] == ['C1', 'C5']

    def test_summary(self, service, clients_csv):
        """Test validation counts and history flags."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)

        summary = service.summary(upload.id)

        assert summary['session_id'] == upload.id
        assert (summary['total'], summary['valid'], summary['invalid']) == (5, 2, 3)
        assert summary['error_counts'] == {
            'PriorityLevel 1-5': 1,
            'Duplicate ClientID': 1,
            'Missing ClientID': 1,
            'Bad JSON': 1,
        }
        assert summary['can_undo'] is False
        assert summary['can_redo'] is False

    def test_export_zip(self, service, clients_csv):
        """Test that exports reflect edits."""
        upload = service.create_session('clients', 'clients.csv', clients_csv)
        service.edit_row(upload.id, 1, {'PriorityLevel': '1'})

        payload, filename, _ = service.export(upload.id, 'zip')

        assert filename == 'valid-data.zip'
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            text = archive.read('valid-rows.csv').decode('utf-8')
        lines = text.splitlines()
        assert lines[0] == 'ClientID,PriorityLevel,AttributesJSON,Name'
        assert [line.split(',')[0] for line in lines[1:]] == ['C1', 'C2', 'C5']
