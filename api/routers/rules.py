"""
Rules router - Manage custom validation rules of an upload session.
"""

import logging
from typing import List
from fastapi import APIRouter, Depends, status

from api.dependencies import get_session_service
from api.schemas.rule_schema import RuleCreateRequest, RuleResponse
from services.session_service import SessionService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix='/uploads/{session_id}/rules', tags=['rules'])


@router.get('', response_model=List[RuleResponse])
async def list_rules(
    session_id: int,
    service: SessionService = Depends(get_session_service)
):
    """List custom rules in evaluation order."""
    upload = service.get_session(session_id)
    return [RuleResponse.model_validate(rule) for rule in upload.rules]


@router.post('', response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
async def add_rule(
    session_id: int,
    request: RuleCreateRequest,
    service: SessionService = Depends(get_session_service)
):
    """
    Add a custom validation rule and re-validate the table.

    **Conditions:**
    - `equals`: fails when the column value differs from `value`
    - `not equals`: fails when the column value equals `value`
    - `contains`: fails when `value` is not part of the column value
    - `not contains`: fails when `value` is part of the column value

    **Example:**
    ```bash
    curl -X POST http://localhost:8000/api/uploads/1/rules \\
         -H "Content-Type: application/json" \\
         -d '{"field": "ClientID", "condition": "contains", "value": "C-"}'
    ```
    """
    rule = service.add_rule(
        session_id,
        field=request.field,
        condition=request.condition,
        value=request.value,
        message=request.message
    )
    return RuleResponse.model_validate(rule)


@router.delete('/{rule_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    session_id: int,
    rule_id: int,
    service: SessionService = Depends(get_session_service)
):
    """Remove a custom rule and re-validate the table."""
    service.remove_rule(session_id, rule_id)
    return None  # 204 No Content
