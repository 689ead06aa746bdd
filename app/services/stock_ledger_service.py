"""Stock Ledger Service - the only writer of Product.stock_quantity."""
from typing import Optional, List
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InsufficientStock, NotFound, ValidationFailed
from app.models.inventory import StockMovement, StockMovementType
from app.models.product import Product


logger = logging.getLogger(__name__)


class StockLedgerService:
    """
    Atomic deduct/restock/adjust with one StockMovement per stock change.

    Each mutation locks the product row (SELECT ... FOR UPDATE) and flushes
    the product and its ledger row together. The caller owns the transaction:
    nothing here commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _lock_product(self, product_id: uuid.UUID) -> Product:
        result = await self.db.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFound("Product not found", details={"product_id": str(product_id)})
        return product

    async def _record(
        self,
        product: Product,
        new_stock: int,
        movement_type: StockMovementType,
        user_id: Optional[uuid.UUID],
        reason: Optional[str] = None,
        order_id: Optional[uuid.UUID] = None,
        supplier_name: Optional[str] = None,
        invoice_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StockMovement:
        previous_stock = product.stock_quantity
        movement = StockMovement(
            product_id=product.id,
            movement_type=movement_type.value,
            change_amount=new_stock - previous_stock,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reason=reason or movement_type.value,
            order_id=order_id,
            supplier_name=supplier_name,
            invoice_number=invoice_number,
            user_id=user_id,
            notes=notes,
        )
        product.stock_quantity = new_stock
        self.db.add(movement)
        await self.db.flush()

        logger.info(
            "Stock %s on %s: %d -> %d (%+d)",
            movement_type.value, product.name, previous_stock, new_stock,
            movement.change_amount,
        )
        return movement

    # ==================== MUTATIONS ====================

    async def deduct(
        self,
        product_id: uuid.UUID,
        quantity: int,
        reason: str = StockMovementType.ORDER_DEDUCTION.value,
        user_id: Optional[uuid.UUID] = None,
        order_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Take quantity out of stock. Returns the new stock level."""
        if quantity is None or quantity <= 0:
            raise ValidationFailed("Quantity must be greater than 0")

        product = await self._lock_product(product_id)
        if product.stock_quantity < quantity:
            logger.info(
                "Insufficient stock for %s: available=%d required=%d",
                product.name, product.stock_quantity, quantity,
            )
            raise InsufficientStock(product.name, product.stock_quantity, quantity)

        await self._record(
            product,
            product.stock_quantity - quantity,
            StockMovementType.ORDER_DEDUCTION,
            user_id,
            reason=reason,
            order_id=order_id,
        )
        return product.stock_quantity

    async def restock(
        self,
        product_id: uuid.UUID,
        quantity: int,
        user_id: Optional[uuid.UUID] = None,
        supplier_name: Optional[str] = None,
        invoice_number: Optional[str] = None,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> int:
        """Add received goods to stock. Returns the new stock level."""
        if quantity is None or quantity <= 0:
            raise ValidationFailed("Quantity must be greater than 0")

        product = await self._lock_product(product_id)
        await self._record(
            product,
            product.stock_quantity + quantity,
            StockMovementType.RESTOCK,
            user_id,
            reason=reason,
            supplier_name=supplier_name,
            invoice_number=invoice_number,
            notes=notes,
        )
        return product.stock_quantity

    async def adjust(
        self,
        product_id: uuid.UUID,
        new_quantity: int,
        user_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> int:
        """
        Set stock to an absolute counted value.

        Writes one manual_adjust row carrying the signed difference. An
        adjustment to the current value writes nothing.
        """
        if new_quantity is None or new_quantity < 0:
            raise ValidationFailed("Stock quantity cannot be negative")

        product = await self._lock_product(product_id)
        if product.stock_quantity == new_quantity:
            return product.stock_quantity

        await self._record(
            product,
            new_quantity,
            StockMovementType.MANUAL_ADJUST,
            user_id,
            notes=notes,
        )
        return product.stock_quantity

    # ==================== READ MODEL ====================

    async def get_product(self, product_id: uuid.UUID) -> Product:
        result = await self.db.execute(select(Product).where(Product.id == product_id))
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFound("Product not found", details={"product_id": str(product_id)})
        return product

    async def get_movements(
        self,
        product_id: Optional[uuid.UUID] = None,
        movement_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[StockMovement]:
        """Ledger rows, newest first."""
        query = select(StockMovement)
        if product_id:
            query = query.where(StockMovement.product_id == product_id)
        if movement_type:
            query = query.where(StockMovement.movement_type == movement_type)
        query = query.order_by(StockMovement.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def replay_stock(self, product_id: uuid.UUID) -> int:
        """Sum of all signed movements for a product."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(StockMovement.change_amount), 0))
            .where(StockMovement.product_id == product_id)
        )
        return int(result.scalar_one())
