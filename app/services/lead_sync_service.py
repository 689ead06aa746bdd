"""
Cross-entity synchronizer.

Pushes an order's status to its linked inbound lead. Runs after the order
change is committed; a failure here never undoes the order change. It is
logged and handed back to the caller as a warning instead.
"""
from typing import Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.lead import InboundLead, InboundLeadStatus
from app.models.order import Order, OrderStatus, OrderSource


logger = logging.getLogger(__name__)


# Order status -> inbound lead status
INBOUND_STATUS_MAP: Dict[str, str] = {
    OrderStatus.PENDING.value: InboundLeadStatus.PENDING.value,
    OrderStatus.TAKE.value: InboundLeadStatus.CONTACTED.value,
    OrderStatus.CALL_AGAIN.value: InboundLeadStatus.CONTACTED.value,
    OrderStatus.CONFIRMED.value: InboundLeadStatus.CONVERTED.value,
    OrderStatus.SHIPPED.value: InboundLeadStatus.CONVERTED.value,
    OrderStatus.DELIVERED.value: InboundLeadStatus.CONVERTED.value,
    OrderStatus.PAID.value: InboundLeadStatus.CONVERTED.value,
    OrderStatus.RETURNED.value: InboundLeadStatus.REJECTED.value,
    OrderStatus.TRASHED.value: InboundLeadStatus.REJECTED.value,
    OrderStatus.CANCELLED.value: InboundLeadStatus.REJECTED.value,
}


def inbound_status_for(order_status: str) -> Optional[str]:
    return INBOUND_STATUS_MAP.get(order_status)


class LeadSyncService:
    """Writes mirrored lead status. Never promotes leads."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _apply(self, order: Order) -> Optional[InboundLead]:
        if order.source_type == OrderSource.PREDICTION_LEAD.value:
            # Promotion already set the prediction lead; orders are the source of truth after that
            return None
        if order.inbound_lead_id is None:
            return None

        target = inbound_status_for(order.status)
        if target is None:
            return None

        result = await self.db.execute(
            select(InboundLead).where(InboundLead.id == order.inbound_lead_id)
        )
        lead = result.scalar_one_or_none()
        if lead is None:
            logger.warning(
                "Order %s links missing inbound lead %s",
                order.display_id, order.inbound_lead_id,
            )
            return None

        if lead.status != target:
            logger.info(
                "Inbound lead %s: %s -> %s (order %s is %s)",
                lead.id, lead.status, target, order.display_id, order.status,
            )
            lead.status = target
        return lead

    async def sync_order_status(self, order: Order) -> List[str]:
        """
        Mirror the order status onto its inbound lead and commit.

        Returns a list of warnings; empty when the lead is consistent.
        """
        display_id = order.display_id
        try:
            await self._apply(order)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            message = (
                f"Order {display_id} was updated but its inbound lead "
                f"could not be synchronized"
            )
            logger.warning(message, exc_info=True)
            return [message]
        return []
