"""
Upload session Pydantic schemas.

This module contains schemas for upload sessions and their column mapping.
"""

from datetime import datetime
from typing import Dict, List
from pydantic import BaseModel, Field

from api.schemas.common import PaginatedResponse
from api.schemas.rule_schema import RuleResponse
from backend.models.schema import UploadSession
from services.mapping_service import EXPECTED_FIELDS
from services.validation_service import is_row_valid


class UploadListItem(BaseModel):
    """Upload session list item."""

    id: int = Field(..., description="Upload session ID")
    dataset_type: str = Field(..., description="Dataset kind: clients, tasks or workers")
    original_filename: str = Field(..., description="Uploaded file name")
    created_at: datetime = Field(..., description="Upload timestamp")
    row_count: int = Field(..., description="Number of rows")
    valid_count: int = Field(..., description="Rows without validation errors")

    @classmethod
    def from_session(cls, upload: UploadSession) -> 'UploadListItem':
        rows = upload.rows or []
        return cls(
            id=upload.id,
            dataset_type=upload.dataset_type,
            original_filename=upload.original_filename,
            created_at=upload.created_at,
            row_count=len(rows),
            valid_count=sum(1 for row in rows if is_row_valid(row))
        )


class UploadDetail(UploadListItem):
    """Full upload session state (without the rows themselves)."""

    file_hash: str = Field(..., description="SHA256 of the uploaded bytes")
    updated_at: datetime = Field(..., description="Last change timestamp")
    headers: List[str] = Field(..., description="Source columns in file order")
    mapping: Dict[str, str] = Field(..., description="Target field -> source column")
    rules: List[RuleResponse] = Field(default_factory=list, description="Custom validation rules")
    can_undo: bool = Field(..., description="Undo is available")
    can_redo: bool = Field(..., description="Redo is available")

    @classmethod
    def from_session(cls, upload: UploadSession) -> 'UploadDetail':
        base = UploadListItem.from_session(upload)
        return cls(
            **base.model_dump(),
            file_hash=upload.file_hash,
            updated_at=upload.updated_at,
            headers=list(upload.headers),
            mapping=dict(upload.mapping),
            rules=[RuleResponse.model_validate(rule) for rule in upload.rules],
            can_undo=bool(upload.undo_stack),
            can_redo=bool(upload.redo_stack)
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "dataset_type": "clients",
                "original_filename": "clients.csv",
                "created_at": "2025-10-15T12:00:00Z",
                "updated_at": "2025-10-15T12:05:00Z",
                "row_count": 120,
                "valid_count": 117,
                "file_hash": "a1b2c3d4e5f67890...",
                "headers": ["id", "prio", "attrs"],
                "mapping": {"ClientID": "id", "PriorityLevel": "prio", "AttributesJSON": "attrs"},
                "rules": [],
                "can_undo": True,
                "can_redo": False
            }
        }


UploadListResponse = PaginatedResponse[UploadListItem]


class MappingResponse(BaseModel):
    """Current column mapping of an upload session."""

    expected_fields: List[str] = Field(default_factory=lambda: list(EXPECTED_FIELDS),
                                       description="Target schema fields")
    headers: List[str] = Field(..., description="Source columns available for mapping")
    mapping: Dict[str, str] = Field(..., description="Target field -> source column")


class MappingUpdateRequest(BaseModel):
    """Change the source column of one or more target fields."""

    mapping: Dict[str, str] = Field(..., min_length=1, description="Target field -> source column")

    class Config:
        json_schema_extra = {
            "example": {
                "mapping": {"ClientID": "client_id", "PriorityLevel": "priority"}
            }
        }
