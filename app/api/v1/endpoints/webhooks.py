"""Public landing-page webhooks. No authentication."""
from fastapi import APIRouter, status

from app.api.deps import DB
from app.schemas.lead import InboundLeadCreate, WebhookIngestResponse
from app.services.inbound_lead_service import InboundLeadService


router = APIRouter(tags=["Webhooks"])


@router.post(
    "/leads",
    response_model=WebhookIngestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def receive_lead(data: InboundLeadCreate, db: DB):
    """Generic landing-page webhook."""
    lead, order = await InboundLeadService(db).ingest(data)
    return WebhookIngestResponse(lead_id=lead.id, order_id=order.id, display_id=order.display_id)


@router.post(
    "/{slug}",
    response_model=WebhookIngestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def receive_lead_for_webhook(slug: str, data: InboundLeadCreate, db: DB):
    """Per-campaign webhook; the lead inherits the webhook's product."""
    lead, order = await InboundLeadService(db).ingest(data, slug=slug)
    return WebhookIngestResponse(lead_id=lead.id, order_id=order.id, display_id=order.display_id)
