"""
Data Alchemist exception hierarchy.

Every domain error carries the HTTP status code the API layer should answer
with, so routers can let them propagate to the application exception handler.
"""


class DataAlchemistError(Exception):
    """Base exception for all Data Alchemist errors."""

    status_code = 400


class UnsupportedFileTypeError(DataAlchemistError):
    """Uploaded file is neither CSV nor XLSX."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__("Unsupported file type. Please upload a .csv or .xlsx file.")


class FileParseError(DataAlchemistError):
    """Uploaded file could not be read."""


class EmptyUploadError(DataAlchemistError):
    """Uploaded file has no header row."""


class SessionNotFoundError(DataAlchemistError):
    """Upload session does not exist."""

    status_code = 404

    def __init__(self, session_id: int):
        self.session_id = session_id
        super().__init__(f"Upload session {session_id} not found")


class InvalidMappingError(DataAlchemistError):
    """Column mapping references unknown fields or headers."""

    status_code = 422


class InvalidRuleError(DataAlchemistError):
    """Validation rule is malformed or targets an unknown field."""

    status_code = 422


class RuleNotFoundError(DataAlchemistError):
    """Validation rule does not exist in the session."""

    status_code = 404

    def __init__(self, rule_id: int):
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} not found")


class RowNotFoundError(DataAlchemistError):
    """Row id is not part of the current table."""

    status_code = 404

    def __init__(self, row_id: int):
        self.row_id = row_id
        super().__init__(f"Row {row_id} not found")


class InvalidEditError(DataAlchemistError):
    """Row edit touches internal bookkeeping fields."""

    status_code = 422


class HistoryEmptyError(DataAlchemistError):
    """Nothing to undo or redo."""

    status_code = 409

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Nothing to {action}")


class InvalidDatasetTypeError(DataAlchemistError):
    """Dataset type is not one of the supported kinds."""

    def __init__(self, dataset_type: str, allowed):
        self.dataset_type = dataset_type
        super().__init__(
            f"Unknown dataset type '{dataset_type}'. Choose one of: {', '.join(allowed)}"
        )
