# Services module
from app.services.stock_ledger_service import StockLedgerService
from app.services.order_number_service import OrderNumberService
from app.services.order_service import OrderService
from app.services.lead_sync_service import LeadSyncService
from app.services.assignment_service import AssignmentService
from app.services.lead_promotion_service import LeadPromotionService
from app.services.inbound_lead_service import InboundLeadService
from app.services.user_service import UserService

__all__ = [
    "StockLedgerService",
    "OrderNumberService",
    "OrderService",
    "LeadSyncService",
    "AssignmentService",
    "LeadPromotionService",
    "InboundLeadService",
    "UserService",
]
