"""
Pydantic schemas for request/response validation.

This package contains all Pydantic models used for API request validation
and response serialization.
"""

from api.schemas.common import ErrorResponse, PaginationParams, PaginatedResponse, HealthCheckResponse
from api.schemas.upload_schema import (
    UploadListItem, UploadDetail, UploadListResponse, MappingResponse, MappingUpdateRequest
)
from api.schemas.rule_schema import RuleCreateRequest, RuleResponse
from api.schemas.row_schema import RowResponse, RowEditRequest, ValidationSummaryResponse

__all__ = [
    # Common
    'ErrorResponse',
    'PaginationParams',
    'PaginatedResponse',
    'HealthCheckResponse',

    # Upload
    'UploadListItem',
    'UploadDetail',
    'UploadListResponse',
    'MappingResponse',
    'MappingUpdateRequest',

    # Rule
    'RuleCreateRequest',
    'RuleResponse',

    # Row
    'RowResponse',
    'RowEditRequest',
    'ValidationSummaryResponse',
]
