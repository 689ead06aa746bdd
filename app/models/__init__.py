# Models module
from app.models.user import User, UserRole, RoleCode
from app.models.product import Product
from app.models.order import (
    Order, OrderHistory, OrderNote, OrderSequence, OrderStatus, OrderSource
)
from app.models.inventory import StockMovement, StockMovementType
from app.models.lead import (
    PredictionList, PredictionLead, PredictionLeadStatus,
    Webhook, WebhookStatus, InboundLead, InboundLeadStatus,
)
from app.models.call_log import CallLog, CallOutcome, CallContext

__all__ = [
    "User",
    "UserRole",
    "RoleCode",
    "Product",
    "Order",
    "OrderHistory",
    "OrderNote",
    "OrderSequence",
    "OrderStatus",
    "OrderSource",
    "StockMovement",
    "StockMovementType",
    "PredictionList",
    "PredictionLead",
    "PredictionLeadStatus",
    "Webhook",
    "WebhookStatus",
    "InboundLead",
    "InboundLeadStatus",
    "CallLog",
    "CallOutcome",
    "CallContext",
]
