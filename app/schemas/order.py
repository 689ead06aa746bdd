from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.models.order import OrderStatus
from app.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


def _check_status(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in OrderStatus.values():
        raise ValueError(f"status must be one of: {', '.join(OrderStatus.values())}")
    return value


# ==================== REQUESTS ====================

class OrderCreate(BaseCreateSchema):
    """Manual order entry."""
    product_id: Optional[UUID] = None
    product_name: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(Decimal("0"), ge=0)

    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=1, max_length=50)
    customer_city: Optional[str] = Field(None, max_length=100)
    customer_address: Optional[str] = None
    postal_code: Optional[str] = Field(None, max_length=20)

    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class OrderStatusUpdate(BaseUpdateSchema):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_status(v)


class BulkStatusUpdate(BaseUpdateSchema):
    order_ids: List[UUID] = Field(..., min_length=1)
    status: str


class OrderCustomerUpdate(BaseUpdateSchema):
    """Partial edit; only fields present in the body are applied."""
    customer_name: Optional[str] = Field(None, min_length=1, max_length=200)
    customer_phone: Optional[str] = Field(None, min_length=1, max_length=50)
    customer_city: Optional[str] = Field(None, max_length=100)
    customer_address: Optional[str] = None
    postal_code: Optional[str] = Field(None, max_length=20)
    product_id: Optional[UUID] = None
    product_name: Optional[str] = Field(None, max_length=255)
    quantity: Optional[int] = Field(None, ge=1)
    price: Optional[Decimal] = Field(None, ge=0)


class OrderNoteCreate(BaseCreateSchema):
    text: str = Field(..., min_length=1)


class OrderAssign(BaseUpdateSchema):
    agent_id: UUID


class BulkAssign(BaseUpdateSchema):
    order_ids: List[UUID] = Field(..., min_length=1)
    agent_id: UUID


class BulkUnassign(BaseUpdateSchema):
    order_ids: List[UUID] = Field(..., min_length=1)


# ==================== RESPONSES ====================

class OrderHistoryResponse(BaseResponseSchema):
    id: UUID
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[UUID] = None
    changed_by_name: Optional[str] = None
    changed_at: datetime


class OrderNoteResponse(BaseResponseSchema):
    id: UUID
    text: str
    author_id: Optional[UUID] = None
    author_name: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseResponseSchema):
    id: UUID
    display_id: str
    product_id: Optional[UUID] = None
    product_name: str
    quantity: int
    price: Decimal
    customer_name: str
    customer_phone: str
    customer_city: Optional[str] = None
    customer_address: Optional[str] = None
    postal_code: Optional[str] = None
    status: str
    assigned_agent_id: Optional[UUID] = None
    assigned_agent_name: Optional[str] = None
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None
    source_type: str
    inbound_lead_id: Optional[UUID] = None
    source_lead_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class OrderDetailResponse(OrderResponse):
    history: List[OrderHistoryResponse] = []
    notes: List[OrderNoteResponse] = []


class OrderStatusResponse(BaseResponseSchema):
    order: OrderResponse
    warnings: List[str] = []


class BulkSkippedItem(BaseResponseSchema):
    order_id: str
    display_id: Optional[str] = None
    reason: str


class BulkStatusResponse(BaseResponseSchema):
    status: str
    updated: List[str]
    skipped: List[BulkSkippedItem]
    warnings: List[str] = []


class AssignmentResponse(BaseResponseSchema):
    updated: int
    agent_id: Optional[UUID] = None
    agent_name: Optional[str] = None
