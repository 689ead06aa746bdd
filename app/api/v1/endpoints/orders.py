import uuid

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser
from app.models.order import Order
from app.schemas.order import (
    OrderCreate,
    OrderStatusUpdate,
    BulkStatusUpdate,
    OrderCustomerUpdate,
    OrderNoteCreate,
    OrderAssign,
    BulkAssign,
    BulkUnassign,
    OrderResponse,
    OrderDetailResponse,
    OrderHistoryResponse,
    OrderNoteResponse,
    OrderStatusResponse,
    BulkStatusResponse,
    AssignmentResponse,
)
from app.services.assignment_service import AssignmentService
from app.services.order_service import OrderService


router = APIRouter(tags=["Orders"])


def _build_order_detail_response(order: Order) -> OrderDetailResponse:
    """Build OrderDetailResponse from an Order loaded with history and notes."""
    return OrderDetailResponse(
        **OrderResponse.model_validate(order).model_dump(),
        history=[OrderHistoryResponse.model_validate(h) for h in order.status_history],
        notes=[OrderNoteResponse.model_validate(n) for n in order.notes],
    )


@router.post(
    "",
    response_model=OrderDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    data: OrderCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Create a manual order.
    Non-admin creators are assigned the order.
    """
    service = OrderService(db)
    order = await service.create_order(data, current_user)
    order = await service.get_order_by_id(order.id, include_all=True)
    return _build_order_detail_response(order)


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
)
async def get_order(
    order_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Get order with its status history and notes. Agents see unassigned orders and their own."""
    order = await OrderService(db).get_order_by_id(order_id, include_all=True, actor=current_user)
    return _build_order_detail_response(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderStatusResponse,
)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Set order status.

    Role and completeness gates apply; entering confirmed deducts stock.
    Inbound lead synchronization problems come back in `warnings`.
    """
    order, warnings = await OrderService(db).update_status(order_id, data.status, current_user)
    return OrderStatusResponse(
        order=OrderResponse.model_validate(order),
        warnings=warnings,
    )


@router.post(
    "/bulk-status-update",
    response_model=BulkStatusResponse,
)
async def bulk_update_status(
    data: BulkStatusUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Move many orders to shipped, paid, cancelled or returned.
    Requires admin, manager or warehouse role.
    """
    result = await OrderService(db).bulk_update_status(data.order_ids, data.status, current_user)
    return BulkStatusResponse(**result)


@router.patch(
    "/{order_id}/customer",
    response_model=OrderResponse,
)
async def update_customer_fields(
    order_id: uuid.UUID,
    data: OrderCustomerUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Edit customer and product fields. Product, price and quantity lock once shipped."""
    order = await OrderService(db).update_customer_fields(
        order_id,
        data.model_dump(exclude_unset=True),
        current_user,
    )
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/notes",
    response_model=OrderNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_order_note(
    order_id: uuid.UUID,
    data: OrderNoteCreate,
    db: DB,
    current_user: CurrentUser,
):
    note = await OrderService(db).add_note(order_id, data.text, current_user)
    return OrderNoteResponse.model_validate(note)


# ==================== ASSIGNMENT ====================

@router.post(
    "/{order_id}/assign",
    response_model=OrderResponse,
)
async def assign_order(
    order_id: uuid.UUID,
    data: OrderAssign,
    db: DB,
    current_user: CurrentUser,
):
    """Assign an order to an active agent. Admin or manager only."""
    order = await AssignmentService(db).assign_order(order_id, data.agent_id, current_user)
    return OrderResponse.model_validate(order)


@router.post(
    "/bulk-assign",
    response_model=AssignmentResponse,
)
async def bulk_assign_orders(
    data: BulkAssign,
    db: DB,
    current_user: CurrentUser,
):
    result = await AssignmentService(db).bulk_assign_orders(data.order_ids, data.agent_id, current_user)
    return AssignmentResponse(**result)


@router.post(
    "/bulk-unassign",
    response_model=AssignmentResponse,
)
async def bulk_unassign_orders(
    data: BulkUnassign,
    db: DB,
    current_user: CurrentUser,
):
    result = await AssignmentService(db).bulk_unassign_orders(data.order_ids, current_user)
    return AssignmentResponse(**result)
