"""
Lead-to-order promotion for prediction-list leads.

A lead set to call_again or confirmed gets exactly one order; later
updates move that order instead of creating another. Duplicate orders are
prevented by the lead row lock plus the unique constraint on
orders.source_lead_id.
"""
from typing import Optional, Tuple
from datetime import datetime, timezone
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Conflict, DomainError, NotFound, ValidationFailed
from app.core.permissions import RoleSet, ensure_can_work
from app.models.lead import PredictionLead, PredictionLeadStatus
from app.models.order import Order, OrderNote, OrderStatus, OrderSource
from app.models.user import User
from app.services import order_state_machine as osm
from app.services.assignment_service import AssignmentService
from app.services.order_number_service import OrderNumberService
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)


SYSTEM_PROMOTER_NAME = "System (from Prediction Lead)"
DEFAULT_PRODUCT_NAME = "From Prediction Lead"

# Lead status -> status of the promoted order
PROMOTION_TRIGGERS = {
    PredictionLeadStatus.CALL_AGAIN.value: OrderStatus.CALL_AGAIN.value,
    PredictionLeadStatus.CONFIRMED.value: OrderStatus.CONFIRMED.value,
}

# A non-admin setting one of these takes ownership of the lead
OWNERSHIP_STATUSES = frozenset({
    PredictionLeadStatus.INTERESTED.value,
    PredictionLeadStatus.CONFIRMED.value,
    PredictionLeadStatus.NO_ANSWER.value,
})

EDITABLE_FIELDS = (
    "name", "telephone", "address", "city",
    "product", "quantity", "price", "notes",
)

# Columns that reject an explicit null
REQUIRED_FIELDS = ("quantity", "price")

# Sub-states that only exist before a lead has an order
PRE_ORDER_STATUSES = frozenset({
    PredictionLeadStatus.NOT_CONTACTED.value,
    PredictionLeadStatus.NO_ANSWER.value,
    PredictionLeadStatus.INTERESTED.value,
    PredictionLeadStatus.NOT_INTERESTED.value,
})


class LeadPromotionService:
    """Prediction lead updates and their promotion into orders."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = OrderService(db)

    async def _lock_lead(self, lead_id: uuid.UUID) -> PredictionLead:
        result = await self.db.execute(
            select(PredictionLead)
            .where(PredictionLead.id == lead_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        lead = result.scalar_one_or_none()
        if lead is None:
            raise NotFound("Lead not found", details={"lead_id": str(lead_id)})
        return lead

    async def get_workable_lead(self, lead_id: uuid.UUID, actor: User) -> PredictionLead:
        """Lock a lead the actor is allowed to work. Raises NotFound or Forbidden."""
        lead = await self._lock_lead(lead_id)
        ensure_can_work(actor.roles, lead.assigned_agent_id, actor.id)
        return lead

    async def find_order(self, lead_id: uuid.UUID, lock: bool = False) -> Optional[Order]:
        """The order promoted from this lead, if any."""
        stmt = select(Order).where(Order.source_lead_id == lead_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== UPDATE ====================

    async def update_prediction_lead(
        self,
        lead_id: uuid.UUID,
        changes: dict,
        actor: User,
    ) -> Tuple[PredictionLead, Optional[Order], bool]:
        """
        Apply an agent's changes to a lead and promote it when it reaches
        call_again or confirmed.

        Returns (lead, order or None, whether the order was created now).
        """
        roles = RoleSet(actor.roles)
        lead = await self.get_workable_lead(lead_id, actor)

        nulled = [field for field in REQUIRED_FIELDS if field in changes and changes[field] is None]
        if nulled:
            raise ValidationFailed(
                f"{', '.join(nulled)} cannot be empty",
                details={"fields": nulled},
            )

        new_status = changes.get("status")
        if new_status in PRE_ORDER_STATUSES and await self.find_order(lead.id) is not None:
            raise ValidationFailed(
                "This lead already has an order; update the order status instead",
                details={"status": new_status},
            )

        for field in EDITABLE_FIELDS:
            if field in changes:
                setattr(lead, field, changes[field])

        claimed = False
        if new_status:
            lead.status = new_status
            if new_status in OWNERSHIP_STATUSES and not roles.is_admin_or_manager:
                claimed = lead.assigned_agent_id != actor.id
                lead.assigned_agent_id = actor.id
                lead.assigned_agent_name = actor.full_name

        order: Optional[Order] = None
        created = False
        try:
            await self.db.flush()
            if claimed:
                await AssignmentService(self.db).refresh_list_counts(lead.list_id)
            if new_status in PROMOTION_TRIGGERS:
                order, created = await self.promote(lead, actor)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Concurrent promotion of lead %s", lead_id, exc_info=True)
            raise Conflict("This lead was updated concurrently, please retry")
        except DomainError as e:
            await self.db.rollback()
            logger.info("Lead %s update to %s rejected: %s", lead_id, new_status, e.message)
            raise

        return lead, order, created

    # ==================== PROMOTION ====================

    async def promote(self, lead: PredictionLead, actor: User) -> Tuple[Optional[Order], bool]:
        """
        Create or move the order linked to this lead. Idempotent. Does not commit.

        A newly created order has no linked product, so creation never
        touches stock. Moving an existing order into confirmed deducts its
        linked product like any other transition and raises
        InsufficientStock before anything is written.
        """
        target_status = PROMOTION_TRIGGERS.get(lead.status)
        if target_status is None:
            return None, False

        order = await self.find_order(lead.id, lock=True)

        if order is not None:
            if order.status != target_status:
                old_status = order.status
                if osm.requires_stock_deduction(old_status, target_status, order.product_id):
                    await self.orders.ledger.deduct(
                        order.product_id,
                        order.quantity,
                        reason="order_deduction",
                        user_id=actor.id,
                        order_id=order.id,
                    )
                self.orders.record_transition(order, target_status, actor.id, actor.full_name)
                await self.db.flush()
                logger.info(
                    "Lead %s moved order %s: %s -> %s",
                    lead.id, order.display_id, old_status, target_status,
                )
            return order, False

        if not (lead.name or lead.telephone):
            logger.info("Lead %s has no name or telephone, not promoted", lead.id)
            return None, False

        order = Order(
            display_id=await OrderNumberService(self.db).get_next_display_id(),
            product_name=lead.product or DEFAULT_PRODUCT_NAME,
            quantity=lead.quantity or 1,
            price=lead.price or 0,
            customer_name=lead.name or "",
            customer_phone=lead.telephone or "",
            customer_city=lead.city or "",
            customer_address=lead.address or "",
            status=target_status,
            source_type=OrderSource.PREDICTION_LEAD.value,
            source_lead_id=lead.id,
            assigned_agent_id=lead.assigned_agent_id,
            assigned_agent_name=lead.assigned_agent_name,
            assigned_at=datetime.now(timezone.utc) if lead.assigned_agent_id else None,
            created_by=actor.id,
        )
        self.db.add(order)
        await self.db.flush()

        self.orders.record_transition(
            order, target_status, actor.id, SYSTEM_PROMOTER_NAME, is_creation=True
        )
        self.db.add(OrderNote(
            order_id=order.id,
            text="Converted from Prediction Lead",
            author_id=actor.id,
            author_name="System",
        ))
        if lead.notes and lead.notes.strip():
            self.db.add(OrderNote(
                order_id=order.id,
                text=lead.notes.strip(),
                author_id=actor.id,
                author_name=lead.assigned_agent_name or "System",
            ))
        await self.db.flush()

        logger.info("Lead %s promoted to order %s (%s)", lead.id, order.display_id, target_status)
        return order, True

    # ==================== OWNERSHIP ====================

    async def take_lead(self, lead_id: uuid.UUID, actor: User) -> PredictionLead:
        """
        Claim a lead. Its status becomes interested unless it already has an
        order, whose status it then keeps following.
        """
        lead = await self.get_workable_lead(lead_id, actor)

        lead.assigned_agent_id = actor.id
        lead.assigned_agent_name = actor.full_name
        if await self.find_order(lead.id) is None:
            lead.status = PredictionLeadStatus.INTERESTED.value

        await self.db.flush()
        await AssignmentService(self.db).refresh_list_counts(lead.list_id)
        await self.db.commit()
        logger.info("Lead %s taken by %s", lead.id, actor.email)
        return lead
