"""
Session Service - Upload sessions: mapping, rules, edits and history.

This module ties the parsing, mapping, validation, history, filter and
export services together over a SQLAlchemy session. It can be used by the
API, the CLI, or tests without any web framework.
"""

import copy
import hashlib
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from backend.models.schema import UploadSession, ValidationRule
from services.exceptions import (
    InvalidDatasetTypeError, InvalidEditError, InvalidRuleError, RowNotFoundError,
    RuleNotFoundError, SessionNotFoundError
)
from services.export_service import export_rows
from services.file_parser_service import parse_upload
from services.filter_service import RowFilter, filter_rows
from services.history_service import EditHistory
from services.mapping_service import (
    DIRTY_KEY, EXPECTED_FIELDS, INTERNAL_KEYS, ROW_ID_KEY,
    default_mapping, map_rows, validate_mapping
)
from services.validation_service import CONDITIONS, DEFAULT_RULE_MESSAGE, Rule, ValidationService, summarize

logger = logging.getLogger(__name__)

DATASET_TYPES = ('clients', 'tasks', 'workers')
DEFAULT_HISTORY_LIMIT = 50


class SessionService:
    """
    Framework-agnostic service for upload sessions.

    Every mutating operation (mapping change, rule change, row edit)
    produces a new validated table and pushes the previous one onto the
    undo stack.
    """

    def __init__(
        self,
        db_session: Session,
        history_limit: Optional[int] = DEFAULT_HISTORY_LIMIT,
        progress_callback: Optional[Callable[[str, float, str], None]] = None
    ):
        """
        Initialize session service.

        Args:
            db_session: SQLAlchemy database session
            history_limit: Max undo snapshots per upload (None for unbounded)
            progress_callback: Optional callback forwarded to validation
                              Signature: callback(stage: str, percent: float, message: str)
        """
        self.session = db_session
        self.history_limit = history_limit
        self.progress_callback = progress_callback

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validator(self, upload: UploadSession) -> ValidationService:
        rules = [
            Rule(field=r.field, condition=r.condition, value=r.value, message=r.message)
            for r in upload.rules
        ]
        return ValidationService(rules=rules, progress_callback=self.progress_callback)

    def _history(self, upload: UploadSession) -> EditHistory:
        # Deep copies keep the loaded JSON untouched so SQLAlchemy sees the change
        return EditHistory(
            current=copy.deepcopy(upload.rows),
            undo_stack=copy.deepcopy(upload.undo_stack),
            redo_stack=copy.deepcopy(upload.redo_stack),
            limit=self.history_limit
        )

    def _store_history(self, upload: UploadSession, history: EditHistory):
        upload.rows = history.current
        upload.undo_stack = history.undo_stack
        upload.redo_stack = history.redo_stack

    def _push(self, upload: UploadSession, next_rows: List[Dict[str, Any]]):
        history = self._history(upload)
        history.push(next_rows)
        self._store_history(upload, history)

    def _commit(self, upload: UploadSession) -> UploadSession:
        self.session.commit()
        self.session.refresh(upload)
        return upload

    def _known_fields(self, upload: UploadSession) -> List[str]:
        fields = list(upload.headers)
        for target in EXPECTED_FIELDS:
            if target not in fields:
                fields.append(target)
        return fields

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, dataset_type: str, filename: str, content: bytes) -> UploadSession:
        """
        Parse an upload and start a new session.

        The initial table is mapped with the default mapping and validated;
        the history starts empty.

        Raises:
            InvalidDatasetTypeError, UnsupportedFileTypeError,
            FileParseError, EmptyUploadError
        """
        if dataset_type not in DATASET_TYPES:
            raise InvalidDatasetTypeError(dataset_type, DATASET_TYPES)

        table = parse_upload(filename, content)
        mapping = default_mapping(table.headers)

        upload = UploadSession(
            dataset_type=dataset_type,
            original_filename=filename,
            file_hash=hashlib.sha256(content).hexdigest(),
            headers=table.headers,
            raw_rows=table.rows,
            mapping=mapping,
            undo_stack=[],
            redo_stack=[]
        )
        upload.rows = self._validator(upload).validate_rows(map_rows(table.rows, mapping))

        self.session.add(upload)
        self._commit(upload)

        logger.info(f"Created upload session {upload.id} for {filename} "
                    f"({dataset_type}, {len(table.rows)} rows)")
        return upload

    def get_session(self, session_id: int) -> UploadSession:
        upload = self.session.get(UploadSession, session_id)
        if upload is None:
            raise SessionNotFoundError(session_id)
        return upload

    def list_sessions(self, offset: int = 0, limit: int = 50) -> Tuple[List[UploadSession], int]:
        """Get a page of sessions (newest first) and the total count."""
        query = self.session.query(UploadSession)
        total = query.count()
        items = query.order_by(UploadSession.id.desc()).offset(offset).limit(limit).all()
        return items, total

    def delete_session(self, session_id: int):
        upload = self.get_session(session_id)
        self.session.delete(upload)
        self.session.commit()
        logger.info(f"Deleted upload session {session_id}")

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def update_mapping(self, session_id: int, mapping: Mapping[str, str]) -> UploadSession:
        """
        Change the column mapping and rebuild the table from the raw rows.

        Row edits made under the previous mapping are not carried over;
        they stay reachable through undo.
        """
        upload = self.get_session(session_id)
        new_mapping = validate_mapping({**upload.mapping, **mapping}, upload.headers)

        rows = self._validator(upload).validate_rows(map_rows(upload.raw_rows, new_mapping))
        upload.mapping = new_mapping
        self._push(upload, rows)

        logger.info(f"Session {session_id}: mapping updated to {new_mapping}")
        return self._commit(upload)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def add_rule(
        self,
        session_id: int,
        field: str,
        condition: str,
        value: str,
        message: str = DEFAULT_RULE_MESSAGE
    ) -> ValidationRule:
        """
        Add a custom rule and re-validate the current rows.

        Raises:
            InvalidRuleError: Unknown field or condition, or empty value
        """
        upload = self.get_session(session_id)

        if field not in self._known_fields(upload):
            raise InvalidRuleError(f"Unknown field '{field}'")
        if condition not in CONDITIONS:
            raise InvalidRuleError(
                f"Unknown condition '{condition}'. Choose one of: {', '.join(CONDITIONS)}"
            )
        if not value:
            raise InvalidRuleError("Rule value must not be empty")

        rule = ValidationRule(field=field, condition=condition, value=value, message=message or '')
        upload.rules.append(rule)
        self._revalidate(upload)
        self._commit(upload)

        logger.info(f"Session {session_id}: added rule {rule.id} ({field} {condition} '{value}')")
        return rule

    def remove_rule(self, session_id: int, rule_id: int) -> UploadSession:
        upload = self.get_session(session_id)

        rule = next((r for r in upload.rules if r.id == rule_id), None)
        if rule is None:
            raise RuleNotFoundError(rule_id)

        upload.rules.remove(rule)
        self._revalidate(upload)

        logger.info(f"Session {session_id}: removed rule {rule_id}")
        return self._commit(upload)

    def _revalidate(self, upload: UploadSession):
        """Re-run validation on the current rows, keeping edits."""
        rows = self._validator(upload).validate_rows(copy.deepcopy(upload.rows))
        self._push(upload, rows)

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def edit_row(self, session_id: int, row_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Change field values of one row.

        The row is marked dirty and the whole table is re-validated, since
        duplicate ClientID detection depends on the other rows.

        Returns:
            The edited row after validation

        Raises:
            InvalidEditError: No changes, internal or unknown fields
            RowNotFoundError: Unknown row id
        """
        upload = self.get_session(session_id)

        if not changes:
            raise InvalidEditError("No changes given")
        internal = [key for key in changes if key in INTERNAL_KEYS or key.startswith('__')]
        if internal:
            raise InvalidEditError(f"Internal field(s) cannot be edited: {', '.join(internal)}")
        known = self._known_fields(upload)
        unknown = [key for key in changes if key not in known]
        if unknown:
            raise InvalidEditError(f"Unknown field(s): {', '.join(unknown)}")

        rows = copy.deepcopy(upload.rows)
        target = next((row for row in rows if row.get(ROW_ID_KEY) == row_id), None)
        if target is None:
            raise RowNotFoundError(row_id)

        target.update(changes)
        target[DIRTY_KEY] = True

        validated = self._validator(upload).validate_rows(rows)
        self._push(upload, validated)
        self._commit(upload)

        logger.info(f"Session {session_id}: edited row {row_id} ({', '.join(changes)})")
        return next(row for row in upload.rows if row.get(ROW_ID_KEY) == row_id)

    def undo(self, session_id: int) -> UploadSession:
        upload = self.get_session(session_id)
        history = self._history(upload)
        history.undo()
        self._store_history(upload, history)
        logger.info(f"Session {session_id}: undo ({len(history.undo_stack)} left)")
        return self._commit(upload)

    def redo(self, session_id: int) -> UploadSession:
        upload = self.get_session(session_id)
        history = self._history(upload)
        history.redo()
        self._store_history(upload, history)
        logger.info(f"Session {session_id}: redo ({len(history.redo_stack)} left)")
        return self._commit(upload)

    def query_rows(self, session_id: int, row_filter: Optional[RowFilter] = None) -> List[Dict[str, Any]]:
        upload = self.get_session(session_id)
        return filter_rows(upload.rows, row_filter or RowFilter())

    def summary(self, session_id: int) -> Dict[str, Any]:
        upload = self.get_session(session_id)
        report = summarize(upload.rows)
        report.update({
            'session_id': upload.id,
            'can_undo': bool(upload.undo_stack),
            'can_redo': bool(upload.redo_stack),
        })
        return report

    def export(self, session_id: int, fmt: str) -> Tuple[bytes, str, str]:
        """Export the valid rows; returns (payload, filename, media type)."""
        upload = self.get_session(session_id)
        return export_rows(upload.rows, fmt)
