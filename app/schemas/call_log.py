from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.models.call_log import CallContext, CallOutcome
from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class CallLogCreate(BaseCreateSchema):
    """An agent's record of one call."""
    context_type: str
    context_id: UUID
    outcome: str
    notes: Optional[str] = Field("", max_length=5000)

    @field_validator("context_type")
    @classmethod
    def validate_context_type(cls, v):
        if v not in CallContext.values():
            raise ValueError(f"context_type must be one of: {', '.join(CallContext.values())}")
        return v

    @field_validator("outcome")
    @classmethod
    def validate_outcome(cls, v):
        if v not in CallOutcome.values():
            raise ValueError(f"outcome must be one of: {', '.join(CallOutcome.values())}")
        return v


class CallLogResponse(BaseResponseSchema):
    id: UUID
    agent_id: Optional[UUID] = None
    agent_name: Optional[str] = None
    context_type: str
    context_id: UUID
    outcome: str
    notes: str
    lead_status: Optional[str] = None
    created_at: datetime


# ==================== PHONE DUPLICATES ====================

class PhoneDuplicateCheck(BaseCreateSchema):
    phone: str = Field(..., min_length=1, max_length=50)
    exclude_order_id: Optional[UUID] = None


class PhoneDuplicate(BaseResponseSchema):
    source: str
    source_id: str
    source_name: Optional[str] = None


class PhoneDuplicateResponse(BaseResponseSchema):
    normalized_phone: str
    matches: List[PhoneDuplicate] = []
