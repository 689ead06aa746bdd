"""
Call logging and phone duplicate lookup.

A call on a prediction lead that has no order yet also moves the lead to
the matching sub-state; once the lead has an order its status follows the
order and calls only leave a log row.
"""
from typing import List, Optional, Tuple
import re
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import RoleSet
from app.models.call_log import CallLog, CallContext, CallOutcome
from app.models.lead import PredictionLead, PredictionList, PredictionLeadStatus
from app.models.order import Order
from app.models.user import User
from app.schemas.call_log import CallLogCreate
from app.services.assignment_service import AssignmentService
from app.services.lead_promotion_service import LeadPromotionService
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)


# Call outcome -> prediction lead status. wrong_number leaves the lead alone.
OUTCOME_LEAD_STATUS = {
    CallOutcome.NO_ANSWER.value: PredictionLeadStatus.NO_ANSWER.value,
    CallOutcome.INTERESTED.value: PredictionLeadStatus.INTERESTED.value,
    CallOutcome.NOT_INTERESTED.value: PredictionLeadStatus.NOT_INTERESTED.value,
    CallOutcome.CALL_AGAIN.value: PredictionLeadStatus.NOT_CONTACTED.value,
}

# An agent logging one of these takes ownership of the lead
CLAIMING_OUTCOMES = frozenset({
    CallOutcome.INTERESTED.value,
    CallOutcome.CALL_AGAIN.value,
})

MIN_PHONE_LENGTH = 8

# Stripped inside SQL before comparing stored phone numbers
PHONE_SEPARATORS = (" ", "-", ".", "(", ")", "/")


def normalize_phone(phone: Optional[str]) -> str:
    """Keep digits and '+' only."""
    return re.sub(r"[^0-9+]", "", phone or "")


def _normalized(column):
    expr = column
    for separator in PHONE_SEPARATORS:
        expr = func.replace(expr, separator, "")
    return expr


class CallLogService:
    """Agent call records and their effect on prediction leads."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.leads = LeadPromotionService(db)
        self.orders = OrderService(db)

    async def log_call(self, data: CallLogCreate, actor: User) -> CallLog:
        """
        Record a call. The actor must be allowed to work the order or lead
        it was about.
        """
        lead_status = None
        if data.context_type == CallContext.ORDER.value:
            await self.orders.get_order_by_id(data.context_id, actor=actor)
        else:
            lead = await self.leads.get_workable_lead(data.context_id, actor)
            lead_status = await self._apply_outcome(lead, data.outcome, actor)

        call = CallLog(
            agent_id=actor.id,
            agent_name=actor.full_name,
            context_type=data.context_type,
            context_id=data.context_id,
            outcome=data.outcome,
            notes=(data.notes or "").strip(),
            lead_status=lead_status,
        )
        self.db.add(call)
        await self.db.commit()

        logger.info(
            "Call on %s %s by %s: %s",
            data.context_type, data.context_id, actor.email, data.outcome,
        )
        return call

    async def _apply_outcome(self, lead: PredictionLead, outcome: str, actor: User) -> Optional[str]:
        new_status = OUTCOME_LEAD_STATUS.get(outcome)
        if new_status is None:
            return None
        if await self.leads.find_order(lead.id) is not None:
            logger.info("Lead %s already has an order, call outcome %s not applied", lead.id, outcome)
            return None

        lead.status = new_status
        claims = (
            outcome in CLAIMING_OUTCOMES
            and lead.assigned_agent_id != actor.id
            and not RoleSet(actor.roles).is_admin_or_manager
        )
        if claims:
            lead.assigned_agent_id = actor.id
            lead.assigned_agent_name = actor.full_name
            await self.db.flush()
            await AssignmentService(self.db).refresh_list_counts(lead.list_id)
        return new_status

    async def list_calls(
        self,
        actor: User,
        context_type: Optional[str] = None,
        context_id: Optional[uuid.UUID] = None,
        limit: int = 100,
    ) -> List[CallLog]:
        """Newest first. Agents see only their own calls."""
        stmt = select(CallLog)
        if not RoleSet(actor.roles).is_admin_or_manager:
            stmt = stmt.where(CallLog.agent_id == actor.id)
        if context_type:
            stmt = stmt.where(CallLog.context_type == context_type)
        if context_id:
            stmt = stmt.where(CallLog.context_id == context_id)
        stmt = stmt.order_by(CallLog.created_at.desc()).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # ==================== PHONE DUPLICATES ====================

    async def find_phone_duplicates(
        self,
        phone: str,
        actor: User,
        exclude_order_id: Optional[uuid.UUID] = None,
    ) -> Tuple[str, List[dict]]:
        """
        Orders and prediction leads already carrying this phone number.

        Numbers shorter than eight characters after normalization match
        nothing. Agents only see matching orders assigned to them.
        """
        normalized = normalize_phone(phone)
        if len(normalized) < MIN_PHONE_LENGTH:
            return normalized, []

        order_stmt = select(Order.display_id, Order.customer_name).where(
            _normalized(Order.customer_phone) == normalized
        )
        if exclude_order_id:
            order_stmt = order_stmt.where(Order.id != exclude_order_id)
        if not RoleSet(actor.roles).is_admin_or_manager:
            order_stmt = order_stmt.where(Order.assigned_agent_id == actor.id)

        lead_stmt = (
            select(PredictionLead.name, PredictionList.name)
            .join(PredictionList, PredictionList.id == PredictionLead.list_id)
            .where(_normalized(PredictionLead.telephone) == normalized)
        )

        matches = [
            {"source": "order", "source_id": display_id, "source_name": customer_name}
            for display_id, customer_name in (await self.db.execute(order_stmt)).all()
        ]
        matches.extend(
            {"source": "prediction_lead", "source_id": lead_name or "", "source_name": list_name}
            for lead_name, list_name in (await self.db.execute(lead_stmt)).all()
        )
        return normalized, matches
