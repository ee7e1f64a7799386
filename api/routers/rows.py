"""
Rows router - Browse, filter and edit the validated table.
"""

import logging
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_session_service
from api.schemas.common import PaginatedResponse, PaginationParams
from api.schemas.row_schema import RowEditRequest, RowResponse
from services.filter_service import ALL_PRIORITIES, RowFilter
from services.session_service import SessionService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix='/uploads/{session_id}/rows', tags=['rows'])


def parse_column_filters(raw_filters: List[str]) -> Dict[str, str]:
    """
    Parse 'column=text' query values into a dict.

    Raises:
        HTTPException: If a value has no '=' separator
    """
    column_filters = {}
    for raw in raw_filters:
        column, sep, text = raw.partition('=')
        if not sep or not column:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid column filter '{raw}'. Use column=text"
            )
        column_filters[column] = text
    return column_filters


@router.get('', response_model=PaginatedResponse[RowResponse])
async def list_rows(
    session_id: int,
    search: str = Query('', description="Case-insensitive text searched in every column"),
    priority: str = Query(ALL_PRIORITIES, description="'all' or a PriorityLevel value (1-5)"),
    only_valid: bool = Query(False, description="Hide rows with validation errors"),
    only_dirty: bool = Query(False, description="Show only rows edited by the user"),
    column_filter: List[str] = Query([], description="Per-column filter as column=text (repeatable)"),
    sort_by: Optional[str] = Query(None, description="Column to sort by"),
    descending: bool = Query(False, description="Sort in descending order"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=1000, description="Items per page"),
    service: SessionService = Depends(get_session_service)
):
    """
    Get validated rows with filtering, sorting and pagination.

    **Examples:**
    ```bash
    # Rows with errors hidden
    curl "http://localhost:8000/api/uploads/1/rows?only_valid=true"

    # Priority 3 rows whose ClientID contains 'acme'
    curl "http://localhost:8000/api/uploads/1/rows?priority=3&column_filter=ClientID=acme"
    ```
    """
    row_filter = RowFilter(
        search=search,
        priority=priority,
        only_valid=only_valid,
        only_dirty=only_dirty,
        column_filters=parse_column_filters(column_filter),
        sort_by=sort_by,
        descending=descending
    )

    pagination = PaginationParams(page=page, page_size=page_size)
    rows = service.query_rows(session_id, row_filter)
    page_rows = rows[pagination.offset:pagination.offset + pagination.limit]

    return PaginatedResponse[RowResponse].create(
        items=[RowResponse.from_row(row) for row in page_rows],
        total=len(rows),
        page=pagination.page,
        page_size=pagination.page_size
    )


@router.patch('/{row_id}', response_model=RowResponse)
async def edit_row(
    session_id: int,
    row_id: int,
    request: RowEditRequest,
    service: SessionService = Depends(get_session_service)
):
    """
    Edit field values of one row.

    The row is marked as changed and the whole table is re-validated.
    The edit can be undone with POST /api/uploads/{session_id}/undo.

    **Example:**
    ```bash
    curl -X PATCH http://localhost:8000/api/uploads/1/rows/4 \\
         -H "Content-Type: application/json" \\
         -d '{"changes": {"PriorityLevel": "2"}}'
    ```
    """
    row = service.edit_row(session_id, row_id, request.changes)
    return RowResponse.from_row(row)
