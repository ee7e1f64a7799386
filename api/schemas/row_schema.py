"""
Row-related Pydantic schemas.

This module contains schemas for validated rows, row edits and
validation summaries.
"""

from typing import Any, Dict, List, Mapping, Union
from pydantic import BaseModel, Field

from services.mapping_service import ROW_ID_KEY, public_fields
from services.validation_service import is_row_dirty, row_errors

VALID_STATUS = '✓'

CellValue = Union[str, int, float, bool, None]


class RowResponse(BaseModel):
    """One row of the validated table."""

    row_id: int = Field(..., description="Position of the row in the uploaded file")
    data: Dict[str, Any] = Field(..., description="Row values keyed by column")
    errors: List[str] = Field(default_factory=list, description="Validation messages")
    valid: bool = Field(..., description="True when the row has no validation errors")
    dirty: bool = Field(False, description="True once the row has been edited")
    status: str = Field(..., description="Errors joined with '; ', or a check mark")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'RowResponse':
        errors = row_errors(row)
        return cls(
            row_id=row[ROW_ID_KEY],
            data=public_fields(row),
            errors=errors,
            valid=not errors,
            dirty=is_row_dirty(row),
            status='; '.join(errors) if errors else VALID_STATUS
        )

    class Config:
        json_schema_extra = {
            "example": {
                "row_id": 3,
                "data": {"ClientID": "C4", "PriorityLevel": "7", "AttributesJSON": "{}"},
                "errors": ["PriorityLevel 1-5"],
                "valid": False,
                "dirty": False,
                "status": "PriorityLevel 1-5"
            }
        }


class RowEditRequest(BaseModel):
    """Field values to change on one row."""

    changes: Dict[str, CellValue] = Field(..., min_length=1, description="Column -> new scalar value")

    class Config:
        json_schema_extra = {
            "example": {
                "changes": {"PriorityLevel": "3"}
            }
        }


class ValidationSummaryResponse(BaseModel):
    """Validation counts for an upload session."""

    session_id: int = Field(..., description="Upload session ID")
    total: int = Field(..., description="Number of rows")
    valid: int = Field(..., description="Rows without errors")
    invalid: int = Field(..., description="Rows with at least one error")
    dirty: int = Field(..., description="Rows edited by the user")
    error_counts: Dict[str, int] = Field(default_factory=dict, description="Occurrences per error message")
    can_undo: bool = Field(..., description="Undo is available")
    can_redo: bool = Field(..., description="Redo is available")
