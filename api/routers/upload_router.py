"""
Upload router - Create and manage upload sessions.

This module provides endpoints for uploading CSV/XLSX files, inspecting
sessions, changing the column mapping, and undoing/redoing changes.
"""

import logging
from fastapi import APIRouter, UploadFile, File, Form, Depends, Query, status

from api.dependencies import get_current_user, get_session_service, verify_file_extension, verify_file_size
from api.schemas.row_schema import ValidationSummaryResponse
from api.schemas.upload_schema import (
    MappingResponse, MappingUpdateRequest, UploadDetail, UploadListItem, UploadListResponse
)
from services.session_service import SessionService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix='/uploads', tags=['uploads'])


@router.post('', response_model=UploadDetail, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(..., description="CSV or XLSX file to validate"),
    dataset_type: str = Form(..., description="Dataset kind: clients, tasks or workers"),
    service: SessionService = Depends(get_session_service),
    current_user: str = Depends(get_current_user)
):
    """
    Upload a CSV/XLSX file and start an upload session.

    **Workflow:**
    1. Check file type and size
    2. Parse the header row and data rows
    3. Map columns onto ClientID, PriorityLevel, AttributesJSON
       (same-named columns are picked automatically)
    4. Validate every row

    **Example:**
    ```bash
    curl -X POST http://localhost:8000/api/uploads \\
         -F "file=@clients.csv" -F "dataset_type=clients"
    ```
    """
    logger.info(f"Upload request from {current_user}: {file.filename} ({dataset_type})")

    verify_file_extension(file.filename)
    content = await file.read()
    verify_file_size(len(content))

    upload = service.create_session(dataset_type, file.filename, content)
    return UploadDetail.from_session(upload)


@router.get('', response_model=UploadListResponse)
async def list_uploads(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    service: SessionService = Depends(get_session_service)
):
    """
    List upload sessions, newest first.

    **Example:**
    ```bash
    curl "http://localhost:8000/api/uploads?page=1&page_size=20"
    ```
    """
    uploads, total = service.list_sessions(offset=(page - 1) * page_size, limit=page_size)

    return UploadListResponse.create(
        items=[UploadListItem.from_session(upload) for upload in uploads],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get('/{session_id}', response_model=UploadDetail)
async def get_upload(
    session_id: int,
    service: SessionService = Depends(get_session_service)
):
    """Get the state of an upload session: headers, mapping, rules, history flags."""
    return UploadDetail.from_session(service.get_session(session_id))


@router.delete('/{session_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_upload(
    session_id: int,
    service: SessionService = Depends(get_session_service),
    current_user: str = Depends(get_current_user)
):
    """Delete an upload session and its rules."""
    service.delete_session(session_id)
    logger.info(f"Upload session {session_id} deleted by {current_user}")
    return None  # 204 No Content


@router.get('/{session_id}/mapping', response_model=MappingResponse)
async def get_mapping(
    session_id: int,
    service: SessionService = Depends(get_session_service)
):
    """Get the current target field -> source column mapping."""
    upload = service.get_session(session_id)
    return MappingResponse(headers=list(upload.headers), mapping=dict(upload.mapping))


@router.put('/{session_id}/mapping', response_model=MappingResponse)
async def update_mapping(
    session_id: int,
    request: MappingUpdateRequest,
    service: SessionService = Depends(get_session_service)
):
    """
    Change the column mapping.

    The table is rebuilt from the uploaded rows and re-validated. Fields
    missing from the request keep their current source column.

    **Example:**
    ```bash
    curl -X PUT http://localhost:8000/api/uploads/1/mapping \\
         -H "Content-Type: application/json" \\
         -d '{"mapping": {"ClientID": "client_id"}}'
    ```
    """
    upload = service.update_mapping(session_id, request.mapping)
    return MappingResponse(headers=list(upload.headers), mapping=dict(upload.mapping))


@router.post('/{session_id}/undo', response_model=UploadDetail)
async def undo(
    session_id: int,
    service: SessionService = Depends(get_session_service)
):
    """Restore the table as it was before the last change (409 if nothing to undo)."""
    return UploadDetail.from_session(service.undo(session_id))


@router.post('/{session_id}/redo', response_model=UploadDetail)
async def redo(
    session_id: int,
    service: SessionService = Depends(get_session_service)
):
    """Re-apply the last undone change (409 if nothing to redo)."""
    return UploadDetail.from_session(service.redo(session_id))


@router.get('/{session_id}/summary', response_model=ValidationSummaryResponse)
async def get_summary(
    session_id: int,
    service: SessionService = Depends(get_session_service)
):
    """
    Get validation counts for the current table.

    **Example:**
    ```bash
    curl http://localhost:8000/api/uploads/1/summary
    ```
    """
    return ValidationSummaryResponse(**service.summary(session_id))
