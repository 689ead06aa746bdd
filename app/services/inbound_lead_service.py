"""Inbound lead ingestion for the public landing-page webhooks."""
from typing import Optional, Tuple
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import Forbidden, NotFound, ValidationFailed
from app.models.lead import InboundLead, InboundLeadStatus, Webhook, WebhookStatus
from app.models.order import Order, OrderNote, OrderStatus, OrderSource
from app.schemas.lead import InboundLeadCreate
from app.services.order_number_service import OrderNumberService
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

WEBHOOK_ACTOR_NAME = "System (Webhook)"


class InboundLeadService:
    """
    Creates an inbound lead and its paired pending order in one transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_webhook(self, slug: str) -> Webhook:
        result = await self.db.execute(
            select(Webhook).where(Webhook.slug == slug).with_for_update()
        )
        webhook = result.scalar_one_or_none()
        if webhook is None:
            raise NotFound("Webhook not found")
        if webhook.status != WebhookStatus.ACTIVE.value:
            raise Forbidden("Webhook is disabled")
        return webhook

    async def ingest(
        self,
        data: InboundLeadCreate,
        slug: Optional[str] = None,
    ) -> Tuple[InboundLead, Order]:
        """
        Record a landing-page submission.

        With a slug the lead is tied to that webhook, inherits its product
        and bumps its lead count; without one it uses the generic product.
        """
        name = (data.name or "").strip()
        phone = (data.phone or "").strip()
        if not name or not phone:
            raise ValidationFailed("Name and phone are required")

        webhook = await self.get_active_webhook(slug) if slug else None

        if webhook is not None:
            product_name = webhook.product_name or settings.INBOUND_DEFAULT_PRODUCT_NAME
            source = data.source or "webhook"
        else:
            product_name = data.product_name or settings.INBOUND_DEFAULT_PRODUCT_NAME
            source = data.source or "landing_page"

        lead = InboundLead(
            name=name,
            phone=phone,
            status=InboundLeadStatus.PENDING.value,
            source=source,
            product_name=product_name,
            webhook_id=webhook.id if webhook else None,
        )
        self.db.add(lead)
        await self.db.flush()

        order = Order(
            display_id=await OrderNumberService(self.db).get_next_display_id(),
            product_name=product_name,
            customer_name=name,
            customer_phone=phone,
            status=OrderStatus.PENDING.value,
            source_type=OrderSource.INBOUND_LEAD.value,
            inbound_lead_id=lead.id,
        )
        self.db.add(order)
        await self.db.flush()

        OrderService(self.db).record_transition(
            order, OrderStatus.PENDING.value, None, WEBHOOK_ACTOR_NAME, is_creation=True
        )
        self.db.add(OrderNote(
            order_id=order.id,
            text=f"Created from inbound lead ({source})",
            author_name=WEBHOOK_ACTOR_NAME,
        ))

        if webhook is not None:
            await self.db.flush()
            total = await self.db.execute(
                select(func.count(InboundLead.id)).where(InboundLead.webhook_id == webhook.id)
            )
            webhook.total_leads = total.scalar_one()

        await self.db.commit()
        logger.info(
            "Inbound lead %s ingested via %s, order %s created",
            lead.id, slug or "generic webhook", order.display_id,
        )
        return lead, order
