from typing import List, Optional
import uuid

from fastapi import APIRouter, Query, status

from app.api.deps import DB, CurrentUser, Roles
from app.core.permissions import ensure_admin_or_manager
from app.models.inventory import StockMovementType
from app.models.product import Product
from app.schemas.inventory import (
    RestockRequest,
    StockAdjustRequest,
    StockLevelResponse,
    StockMovementResponse,
)
from app.services.stock_ledger_service import StockLedgerService


router = APIRouter(tags=["Inventory"])


def _build_stock_level_response(product: Product) -> StockLevelResponse:
    return StockLevelResponse(
        product_id=product.id,
        product_name=product.name,
        stock_quantity=product.stock_quantity,
        is_low_stock=product.is_low_stock,
    )


@router.post(
    "/restock",
    response_model=StockLevelResponse,
    status_code=status.HTTP_201_CREATED,
)
async def restock_product(
    data: RestockRequest,
    db: DB,
    current_user: CurrentUser,
    roles: Roles,
):
    """
    Receive goods into stock.
    Requires admin, manager or warehouse role.
    """
    if not roles.is_warehouse:
        ensure_admin_or_manager(roles)

    ledger = StockLedgerService(db)
    await ledger.restock(
        data.product_id,
        data.quantity,
        user_id=current_user.id,
        supplier_name=data.supplier_name,
        invoice_number=data.invoice_number,
        notes=data.notes,
    )
    product = await ledger.get_product(data.product_id)
    await db.commit()
    return _build_stock_level_response(product)


@router.post(
    "/products/{product_id}/adjust",
    response_model=StockLevelResponse,
)
async def adjust_stock(
    product_id: uuid.UUID,
    data: StockAdjustRequest,
    db: DB,
    current_user: CurrentUser,
    roles: Roles,
):
    """
    Set stock to a counted value. Admin or manager only.
    Adjusting to the current value records nothing.
    """
    ensure_admin_or_manager(roles)

    ledger = StockLedgerService(db)
    await ledger.adjust(product_id, data.new_quantity, user_id=current_user.id, notes=data.notes)
    product = await ledger.get_product(product_id)
    await db.commit()
    return _build_stock_level_response(product)


@router.get(
    "/movements",
    response_model=List[StockMovementResponse],
)
async def list_stock_movements(
    db: DB,
    current_user: CurrentUser,
    roles: Roles,
    product_id: Optional[uuid.UUID] = None,
    movement_type: Optional[StockMovementType] = None,
    limit: int = Query(100, ge=1, le=500),
):
    """Stock ledger, newest first."""
    if not roles.is_warehouse:
        ensure_admin_or_manager(roles)

    movements = await StockLedgerService(db).get_movements(
        product_id=product_id,
        movement_type=movement_type.value if movement_type else None,
        limit=limit,
    )
    return [StockMovementResponse.model_validate(m) for m in movements]
