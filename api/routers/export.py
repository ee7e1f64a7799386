"""
Export router - Download the valid rows of an upload session.
"""

import logging
from typing import Literal
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from api.dependencies import get_session_service
from services.session_service import SessionService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix='/uploads/{session_id}/export', tags=['export'])


@router.get('/{fmt}')
async def export_valid_rows(
    session_id: int,
    fmt: Literal['csv', 'json', 'zip'],
    service: SessionService = Depends(get_session_service)
):
    """
    Download rows without validation errors.

    **Formats:**
    - `csv`: valid-rows.csv
    - `json`: valid-rows.json
    - `zip`: valid-data.zip containing both files

    **Example:**
    ```bash
    curl -OJ http://localhost:8000/api/uploads/1/export/zip
    ```
    """
    payload, filename, media_type = service.export(session_id, fmt)

    return Response(
        content=payload,
        media_type=media_type,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'}
    )
