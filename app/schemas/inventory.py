from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class RestockRequest(BaseCreateSchema):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    supplier_name: Optional[str] = Field(None, max_length=200)
    invoice_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class StockAdjustRequest(BaseCreateSchema):
    new_quantity: int = Field(..., ge=0)
    notes: Optional[str] = None


class StockLevelResponse(BaseResponseSchema):
    product_id: UUID
    product_name: str
    stock_quantity: int
    is_low_stock: bool


class StockMovementResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    movement_type: str
    change_amount: int
    previous_stock: int
    new_stock: int
    reason: Optional[str] = None
    order_id: Optional[UUID] = None
    supplier_name: Optional[str] = None
    invoice_number: Optional[str] = None
    user_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime
