"""
Assignment Balancer

Hands orders and prediction leads to agents:
- Single and bulk order assignment, bulk unassignment
- Load-balanced distribution of a prediction list's unassigned leads

Every assignment re-validates that the target agent exists and is active,
and records who assigned it.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound, ValidationFailed
from app.core.permissions import ensure_admin_or_manager
from app.models.lead import PredictionList, PredictionLead
from app.models.order import Order
from app.models.user import User

logger = logging.getLogger(__name__)


class AssignmentService:
    """
    Service for distributing work among agents.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_agent(self, agent_id: UUID) -> User:
        """Target agent must exist and be active."""
        result = await self.db.execute(select(User).where(User.id == agent_id))
        agent = result.scalar_one_or_none()
        if agent is None or not agent.is_active:
            raise NotFound("Agent not found or inactive", details={"agent_id": str(agent_id)})
        return agent

    # ==================== ORDERS ====================

    async def assign_order(self, order_id: UUID, agent_id: UUID, actor: User) -> Order:
        ensure_admin_or_manager(actor.roles)
        agent = await self.get_active_agent(agent_id)

        result = await self.db.execute(
            select(Order).where(Order.id == order_id).with_for_update()
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound("Order not found", details={"order_id": str(order_id)})

        order.assigned_agent_id = agent.id
        order.assigned_agent_name = agent.full_name
        order.assigned_at = datetime.now(timezone.utc)
        order.assigned_by = actor.full_name

        await self.db.commit()
        logger.info("Order %s assigned to %s by %s", order.display_id, agent.email, actor.email)
        return order

    async def bulk_assign_orders(self, order_ids: List[UUID], agent_id: UUID, actor: User) -> Dict:
        ensure_admin_or_manager(actor.roles)
        agent = await self.get_active_agent(agent_id)

        result = await self.db.execute(
            update(Order)
            .where(Order.id.in_(order_ids))
            .values(
                assigned_agent_id=agent.id,
                assigned_agent_name=agent.full_name,
                assigned_at=datetime.now(timezone.utc),
                assigned_by=actor.full_name,
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()

        logger.info("%d orders assigned to %s by %s", result.rowcount, agent.email, actor.email)
        return {"updated": result.rowcount, "agent_id": agent.id, "agent_name": agent.full_name}

    async def bulk_unassign_orders(self, order_ids: List[UUID], actor: User) -> Dict:
        ensure_admin_or_manager(actor.roles)

        result = await self.db.execute(
            update(Order)
            .where(Order.id.in_(order_ids))
            .values(
                assigned_agent_id=None,
                assigned_agent_name=None,
                assigned_at=None,
                assigned_by=None,
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()

        logger.info("%d orders unassigned by %s", result.rowcount, actor.email)
        return {"updated": result.rowcount}

    # ==================== PREDICTION LEADS ====================

    async def refresh_list_counts(self, list_id: UUID) -> PredictionList:
        """Recompute the cached record and assignment counts of a list."""
        result = await self.db.execute(
            select(PredictionList).where(PredictionList.id == list_id).with_for_update()
        )
        prediction_list = result.scalar_one_or_none()
        if prediction_list is None:
            raise NotFound("Prediction list not found", details={"list_id": str(list_id)})

        counts = await self.db.execute(
            select(
                func.count(PredictionLead.id),
                func.count(PredictionLead.assigned_agent_id),
            ).where(PredictionLead.list_id == list_id)
        )
        total, assigned = counts.one()
        prediction_list.total_records = total
        prediction_list.assigned_count = assigned
        await self.db.flush()
        return prediction_list

    async def _agent_loads(self, list_id: UUID, agent_ids: List[UUID]) -> Dict[UUID, int]:
        result = await self.db.execute(
            select(PredictionLead.assigned_agent_id, func.count(PredictionLead.id))
            .where(
                PredictionLead.list_id == list_id,
                PredictionLead.assigned_agent_id.in_(agent_ids),
            )
            .group_by(PredictionLead.assigned_agent_id)
        )
        loads = {agent_id: 0 for agent_id in agent_ids}
        for agent_id, count in result.all():
            loads[agent_id] = count
        return loads

    async def assign_prediction_leads(
        self,
        list_id: UUID,
        agent_ids: List[UUID],
        actor: User,
        count: Optional[int] = None,
    ) -> Dict:
        """
        Spread a list's unassigned leads over the given agents.

        Each lead goes to the agent currently holding the fewest leads from
        this list, ties broken by the order agents were given in.
        """
        ensure_admin_or_manager(actor.roles)
        if not agent_ids:
            raise ValidationFailed("At least one agent is required")

        agent_ids = list(dict.fromkeys(agent_ids))
        agents = [await self.get_active_agent(agent_id) for agent_id in agent_ids]
        await self.refresh_list_counts(list_id)

        query = (
            select(PredictionLead)
            .where(
                PredictionLead.list_id == list_id,
                PredictionLead.assigned_agent_id.is_(None),
            )
            .order_by(PredictionLead.created_at, PredictionLead.id)
            .with_for_update()
        )
        if count:
            query = query.limit(count)
        leads = (await self.db.execute(query)).scalars().all()

        loads = await self._agent_loads(list_id, agent_ids)
        rank = {agent.id: i for i, agent in enumerate(agents)}
        per_agent: Dict[str, int] = {str(agent.id): 0 for agent in agents}

        for lead in leads:
            agent = min(agents, key=lambda a: (loads[a.id], rank[a.id]))
            lead.assigned_agent_id = agent.id
            lead.assigned_agent_name = agent.full_name
            loads[agent.id] += 1
            per_agent[str(agent.id)] += 1

        await self.db.flush()
        prediction_list = await self.refresh_list_counts(list_id)
        await self.db.commit()

        logger.info(
            "List %s: %d leads assigned over %d agents by %s",
            list_id, len(leads), len(agents), actor.email,
        )
        return {
            "list_id": list_id,
            "assigned": len(leads),
            "assigned_count": prediction_list.assigned_count,
            "per_agent": per_agent,
        }

    async def unassign_prediction_leads(self, lead_ids: List[UUID], actor: User) -> Dict:
        ensure_admin_or_manager(actor.roles)

        leads = (
            await self.db.execute(
                select(PredictionLead)
                .where(PredictionLead.id.in_(lead_ids))
                .with_for_update()
            )
        ).scalars().all()

        list_ids = set()
        for lead in leads:
            lead.assigned_agent_id = None
            lead.assigned_agent_name = None
            list_ids.add(lead.list_id)

        await self.db.flush()
        for list_id in list_ids:
            await self.refresh_list_counts(list_id)
        await self.db.commit()

        logger.info("%d prediction leads unassigned by %s", len(leads), actor.email)
        return {"unassigned": len(leads)}
