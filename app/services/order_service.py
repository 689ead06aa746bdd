from typing import List, Optional, Tuple
from datetime import datetime, timezone
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DomainError, NotFound, ValidationFailed
from app.core.permissions import RoleSet, ensure_can_bulk_update, ensure_can_set_status, ensure_can_work
from app.models.order import Order, OrderHistory, OrderNote, OrderStatus, OrderSource
from app.models.product import Product
from app.models.user import User
from app.schemas.order import OrderCreate
from app.services import order_state_machine as osm
from app.services.lead_sync_service import LeadSyncService
from app.services.order_number_service import OrderNumberService
from app.services.stock_ledger_service import StockLedgerService

logger = logging.getLogger(__name__)

# Fields that may not change once an order is shipped, delivered or paid
LOCKED_FIELDS = ("product_id", "product_name", "price", "quantity")

CUSTOMER_FIELDS = (
    "customer_name", "customer_phone", "customer_city",
    "customer_address", "postal_code",
)

# Columns that reject an explicit null
REQUIRED_FIELDS = ("customer_name", "customer_phone", "product_name", "quantity", "price")

# Statuses an agent may create an order in
CREATABLE_STATUSES = (
    OrderStatus.PENDING.value,
    OrderStatus.CALL_AGAIN.value,
    OrderStatus.CONFIRMED.value,
)


class OrderService:
    """
    Order status transition engine plus manual order operations.

    The only writer of Order.status and OrderHistory.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = StockLedgerService(db)

    # ==================== ORDER LOOKUP ====================

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        include_all: bool = False,
        actor: Optional[User] = None,
    ) -> Order:
        """Get order by ID. Raises NotFound, or Forbidden when actor may not see it."""
        stmt = select(Order).where(Order.id == order_id)
        if include_all:
            stmt = stmt.options(
                selectinload(Order.status_history),
                selectinload(Order.notes),
            ).execution_options(populate_existing=True)

        result = await self.db.execute(stmt)
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound("Order not found", details={"order_id": str(order_id)})
        if actor is not None:
            self.ensure_can_access(order, actor)
        return order

    async def _lock_order(self, order_id: uuid.UUID) -> Order:
        """Load the order row under SELECT ... FOR UPDATE with fresh values."""
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound("Order not found", details={"order_id": str(order_id)})
        return order

    @staticmethod
    def ensure_can_access(order: Order, actor: User) -> None:
        """Agents see and edit unassigned orders and their own; warehouse staff see all."""
        roles = RoleSet(actor.roles)
        if roles.is_warehouse:
            return
        ensure_can_work(roles, order.assigned_agent_id, actor.id, subject="order")

    async def _get_product(self, product_id: uuid.UUID) -> Product:
        result = await self.db.execute(select(Product).where(Product.id == product_id))
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFound("Product not found", details={"product_id": str(product_id)})
        return product

    # ==================== HISTORY ====================

    def record_transition(
        self,
        order: Order,
        new_status: str,
        changed_by: Optional[uuid.UUID],
        changed_by_name: Optional[str],
        from_status: Optional[str] = None,
        is_creation: bool = False,
    ) -> OrderHistory:
        """
        Append one history row, then set the status.

        No gates run here; callers validate first. For creation pass
        is_creation=True so the row starts from no status.
        """
        entry = OrderHistory(
            order_id=order.id,
            from_status=None if is_creation else (from_status or order.status),
            to_status=new_status,
            changed_by=changed_by,
            changed_by_name=changed_by_name,
            changed_at=datetime.now(timezone.utc),
        )
        self.db.add(entry)
        order.status = new_status
        return entry

    # ==================== TRANSITIONS ====================

    async def apply_transition(self, order: Order, new_status: str, actor: User) -> bool:
        """
        Gate and apply one transition on an already locked order.

        Returns False for a same-status no-op. Raises before any write when a
        gate fails, including InsufficientStock from the ledger.
        """
        roles = RoleSet(actor.roles)
        osm.validate_transition(order, new_status, roles)

        old_status = order.status
        if old_status == new_status:
            return False

        if osm.requires_stock_deduction(old_status, new_status, order.product_id):
            await self.ledger.deduct(
                order.product_id,
                order.quantity,
                reason="order_deduction",
                user_id=actor.id,
                order_id=order.id,
            )

        self.record_transition(order, new_status, actor.id, actor.full_name)
        await self.db.flush()

        logger.info(
            "Order %s: %s -> %s by %s",
            order.display_id, old_status, new_status, actor.email,
        )
        return True

    async def update_status(
        self,
        order_id: uuid.UUID,
        new_status: str,
        actor: User,
    ) -> Tuple[Order, List[str]]:
        """
        Set an order's status end to end.

        Lock, gate, deduct stock, append history and commit as one
        transaction; then mirror to the linked inbound lead as a separate
        best-effort step whose problems come back as warnings.
        """
        order = await self._lock_order(order_id)
        try:
            changed = await self.apply_transition(order, new_status, actor)
        except DomainError as e:
            logger.info("Order %s status change to %s rejected: %s", order.display_id, new_status, e.message)
            raise

        if not changed:
            return order, []

        await self.db.commit()

        warnings = await LeadSyncService(self.db).sync_order_status(order)
        if warnings:
            await self.db.refresh(order)
        return order, warnings

    async def bulk_update_status(
        self,
        order_ids: List[uuid.UUID],
        new_status: str,
        actor: User,
    ) -> dict:
        """
        Move many orders to a fulfillment-side status.

        Orders that break a safety rule or fail a gate are skipped and
        reported; the rest go through the single-order engine.
        """
        ensure_can_bulk_update(actor.roles)
        if new_status not in osm.BULK_TARGETS:
            raise ValidationFailed(
                f"Bulk update only supports: {', '.join(sorted(osm.BULK_TARGETS))}"
            )

        updated: List[Order] = []
        skipped: List[dict] = []

        for order_id in dict.fromkeys(order_ids):
            result = await self.db.execute(
                select(Order)
                .where(Order.id == order_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            order = result.scalar_one_or_none()
            if order is None:
                skipped.append({"order_id": str(order_id), "display_id": None, "reason": "not found"})
                continue

            reason = osm.bulk_skip_reason(order.status, new_status)
            if reason is None:
                try:
                    await self.apply_transition(order, new_status, actor)
                except DomainError as e:
                    reason = e.message
            if reason is not None:
                skipped.append({"order_id": str(order.id), "display_id": order.display_id, "reason": reason})
                continue
            updated.append(order)

        await self.db.commit()
        logger.info(
            "Bulk status %s by %s: %d updated, %d skipped",
            new_status, actor.email, len(updated), len(skipped),
        )

        sync = LeadSyncService(self.db)
        warnings: List[str] = []
        for order in updated:
            warnings.extend(await sync.sync_order_status(order))

        return {
            "status": new_status,
            "updated": [o.display_id for o in updated],
            "skipped": skipped,
            "warnings": warnings,
        }

    # ==================== MANUAL ORDERS ====================

    async def create_order(self, data: OrderCreate, actor: User) -> Order:
        """
        Create a manual order.

        A non-admin creator is assigned the order. Creating straight into
        confirmed runs the same completeness and stock gates as a transition.
        """
        roles = RoleSet(actor.roles)
        status = data.status or OrderStatus.PENDING.value
        osm.validate_status(status)
        if not roles.is_admin_or_manager and status not in CREATABLE_STATUSES:
            raise ValidationFailed(
                f"New orders can only be created as: {', '.join(CREATABLE_STATUSES)}"
            )
        ensure_can_set_status(roles, status)

        product_name = (data.product_name or "").strip()
        if data.product_id:
            product = await self._get_product(data.product_id)
            product_name = product_name or product.name

        order = Order(
            product_id=data.product_id,
            product_name=product_name,
            quantity=data.quantity,
            price=data.price,
            customer_name=data.customer_name.strip(),
            customer_phone=data.customer_phone.strip(),
            customer_city=data.customer_city,
            customer_address=data.customer_address,
            postal_code=data.postal_code,
            status=status,
            source_type=OrderSource.MANUAL.value,
            created_by=actor.id,
        )
        if not roles.is_admin:
            order.assigned_agent_id = actor.id
            order.assigned_agent_name = actor.full_name
            order.assigned_at = datetime.now(timezone.utc)
            order.assigned_by = actor.full_name

        osm.check_completeness(order, status)

        order.display_id = await OrderNumberService(self.db).get_next_display_id()
        self.db.add(order)
        await self.db.flush()

        if osm.requires_stock_deduction(None, status, order.product_id):
            # InsufficientStock here leaves the flushed order for the session rollback
            await self.ledger.deduct(
                order.product_id,
                order.quantity,
                reason="order_deduction",
                user_id=actor.id,
                order_id=order.id,
            )

        self.record_transition(order, status, actor.id, actor.full_name, is_creation=True)
        self.db.add(OrderNote(
            order_id=order.id,
            text="Manual Order Created",
            author_id=actor.id,
            author_name=actor.full_name,
        ))
        if data.notes:
            self.db.add(OrderNote(
                order_id=order.id,
                text=data.notes,
                author_id=actor.id,
                author_name=actor.full_name,
            ))

        await self.db.commit()
        logger.info("Manual order %s created as %s by %s", order.display_id, status, actor.email)
        return order

    async def update_customer_fields(
        self,
        order_id: uuid.UUID,
        changes: dict,
        actor: User,
    ) -> Order:
        """
        Partial edit of customer and product fields.

        Product, price and quantity are frozen once the order is shipped,
        delivered or paid.
        """
        order = await self._lock_order(order_id)
        self.ensure_can_access(order, actor)

        nulled = [field for field in REQUIRED_FIELDS if field in changes and changes[field] is None]
        if nulled:
            raise ValidationFailed(
                f"{', '.join(nulled)} cannot be empty",
                details={"fields": nulled},
            )

        locked_changes = [
            field for field in LOCKED_FIELDS
            if field in changes and changes[field] != getattr(order, field)
        ]
        if locked_changes and osm.is_locked(order.status):
            raise ValidationFailed(
                f"Product, price and quantity cannot be changed while the order is {order.status}",
                details={"fields": locked_changes},
            )

        if "product_id" in changes and changes["product_id"] and changes["product_id"] != order.product_id:
            product = await self._get_product(changes["product_id"])
            if not changes.get("product_name"):
                changes["product_name"] = product.name

        for field in CUSTOMER_FIELDS + LOCKED_FIELDS:
            if field in changes:
                value = changes[field]
                if isinstance(value, str):
                    value = value.strip()
                setattr(order, field, value)

        await self.db.commit()
        logger.info("Order %s fields %s updated by %s", order.display_id, sorted(changes), actor.email)
        return order

    # ==================== NOTES ====================

    async def add_note(self, order_id: uuid.UUID, text: str, actor: User) -> OrderNote:
        text = (text or "").strip()
        if not text:
            raise ValidationFailed("Note text is required")

        order = await self.get_order_by_id(order_id)
        self.ensure_can_access(order, actor)
        note = OrderNote(
            order_id=order_id,
            text=text,
            author_id=actor.id,
            author_name=actor.full_name,
        )
        self.db.add(note)
        await self.db.commit()
        return note
