"""
Validation rule Pydantic schemas.
"""

from typing import Literal
from pydantic import BaseModel, Field

from services.validation_service import DEFAULT_RULE_MESSAGE

RuleCondition = Literal['equals', 'not equals', 'contains', 'not contains']


class RuleCreateRequest(BaseModel):
    """Request to add a custom validation rule."""

    field: str = Field(..., min_length=1, description="Column the rule inspects")
    condition: RuleCondition = Field('equals', description="Comparison applied to the column value")
    value: str = Field(..., min_length=1, description="Text compared against the column value")
    message: str = Field(DEFAULT_RULE_MESSAGE, description="Error shown when the rule fails")

    class Config:
        json_schema_extra = {
            "example": {
                "field": "ClientID",
                "condition": "contains",
                "value": "C-",
                "message": "ClientID must use the C- prefix"
            }
        }


class RuleResponse(BaseModel):
    """Stored validation rule."""

    id: int = Field(..., description="Rule ID")
    field: str = Field(..., description="Column the rule inspects")
    condition: str = Field(..., description="Comparison applied to the column value")
    value: str = Field(..., description="Comparison text")
    message: str = Field(..., description="Error shown when the rule fails")

    class Config:
        from_attributes = True
