from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.models.lead import PredictionLeadStatus
from app.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


# ==================== WEBHOOK ====================

class InboundLeadCreate(BaseCreateSchema):
    """Landing-page submission."""
    name: str = Field(..., max_length=200)
    phone: str = Field(..., max_length=50)
    source: Optional[str] = Field(None, max_length=100)
    product_name: Optional[str] = Field(None, max_length=255)


class InboundLeadResponse(BaseResponseSchema):
    id: UUID
    name: str
    phone: str
    status: str
    source: str
    product_name: Optional[str] = None
    webhook_id: Optional[UUID] = None
    created_at: datetime


class WebhookIngestResponse(BaseResponseSchema):
    success: bool = True
    lead_id: UUID
    order_id: UUID
    display_id: str


# ==================== PREDICTION LEADS ====================

class PredictionLeadUpdate(BaseUpdateSchema):
    """Contact outcome and corrected contact data from an agent."""
    status: Optional[str] = None
    name: Optional[str] = Field(None, max_length=200)
    telephone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    product: Optional[str] = Field(None, max_length=255)
    quantity: Optional[int] = Field(None, ge=1)
    price: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in PredictionLeadStatus.values():
            raise ValueError(
                f"status must be one of: {', '.join(PredictionLeadStatus.values())}"
            )
        return v


class PredictionLeadResponse(BaseResponseSchema):
    id: UUID
    list_id: UUID
    name: Optional[str] = None
    telephone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    product: Optional[str] = None
    quantity: int
    price: Decimal
    notes: Optional[str] = None
    status: str
    assigned_agent_id: Optional[UUID] = None
    assigned_agent_name: Optional[str] = None
    updated_at: datetime


class PredictionLeadUpdateResponse(BaseResponseSchema):
    lead: PredictionLeadResponse
    order_id: Optional[UUID] = None
    order_created: bool = False


class PredictionLeadAssign(BaseUpdateSchema):
    """Assign a list's unassigned leads to agents, round robin."""
    agent_ids: List[UUID] = Field(..., min_length=1)
    count: Optional[int] = Field(None, ge=1)


class PredictionLeadUnassign(BaseUpdateSchema):
    lead_ids: List[UUID] = Field(..., min_length=1)


class PredictionAssignResponse(BaseResponseSchema):
    list_id: UUID
    assigned: int
    assigned_count: int
    per_agent: dict = {}


class PredictionUnassignResponse(BaseResponseSchema):
    unassigned: int
