import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm import configure_mappers

from app.core.exceptions import Forbidden, NotFound, ValidationFailed
from app.models.lead import PredictionLead
from app.models.user import User, UserRole
from app.services.assignment_service import AssignmentService
from app.services.user_service import UserService


class TestOrderAssignment:
    async def test_assign_order(self, db_session, make_user, make_order):
        manager = await make_user("manager", full_name="Mina Manager")
        agent = await make_user("agent", full_name="Sara Agent")
        order = await make_order()

        assigned = await AssignmentService(db_session).assign_order(order.id, agent.id, manager)

        assert assigned.assigned_agent_id == agent.id
        assert assigned.assigned_agent_name == "Sara Agent"
        assert assigned.assigned_by == "Mina Manager"
        assert assigned.assigned_at is not None

    async def test_inactive_agent_rejected(self, db_session, make_user, make_order):
        admin = await make_user("admin")
        agent = await make_user("agent", is_active=False)
        order = await make_order()

        with pytest.raises(NotFound) as exc:
            await AssignmentService(db_session).assign_order(order.id, agent.id, admin)
        assert exc.value.message == "Agent not found or inactive"

    async def test_agents_cannot_assign(self, db_session, make_user, make_order):
        agent = await make_user("agent")
        order = await make_order()
        with pytest.raises(Forbidden):
            await AssignmentService(db_session).assign_order(order.id, agent.id, agent)

    async def test_bulk_assign_and_unassign(self, db_session, make_user, make_order):
        admin = await make_user("admin")
        agent = await make_user("agent")
        orders = [await make_order() for _ in range(3)]
        service = AssignmentService(db_session)

        result = await service.bulk_assign_orders([o.id for o in orders], agent.id, admin)
        assert result["updated"] == 3
        for order in orders:
            await db_session.refresh(order)
            assert order.assigned_agent_id == agent.id

        result = await service.bulk_unassign_orders([o.id for o in orders[:2]], admin)
        assert result["updated"] == 2
        await db_session.refresh(orders[0])
        await db_session.refresh(orders[2])
        assert orders[0].assigned_agent_id is None
        assert orders[2].assigned_agent_id == agent.id


class TestPredictionLeadAssignment:
    async def test_load_balanced_distribution(self, db_session, make_user, make_prediction_list):
        manager = await make_user("manager")
        a = await make_user("prediction_agent")
        b = await make_user("prediction_agent")
        prediction_list, _ = await make_prediction_list(5)

        result = await AssignmentService(db_session).assign_prediction_leads(
            prediction_list.id, [a.id, b.id], manager
        )

        assert result["assigned"] == 5
        assert result["assigned_count"] == 5
        assert result["per_agent"] == {str(a.id): 3, str(b.id): 2}

    async def test_existing_load_is_balanced(self, db_session, make_user, make_prediction_list):
        manager = await make_user("manager")
        a = await make_user("prediction_agent")
        b = await make_user("prediction_agent")
        prediction_list, leads = await make_prediction_list(4)
        for lead in leads[:2]:
            lead.assigned_agent_id = a.id
        await db_session.commit()

        result = await AssignmentService(db_session).assign_prediction_leads(
            prediction_list.id, [a.id, b.id], manager
        )

        assert result["per_agent"] == {str(a.id): 0, str(b.id): 2}
        await db_session.refresh(prediction_list)
        assert prediction_list.assigned_count == 4

    async def test_count_limits_assignment(self, db_session, make_user, make_prediction_list):
        admin = await make_user("admin")
        agent = await make_user("prediction_agent")
        prediction_list, _ = await make_prediction_list(5)

        result = await AssignmentService(db_session).assign_prediction_leads(
            prediction_list.id, [agent.id], admin, count=2
        )
        assert result["assigned"] == 2
        assert result["assigned_count"] == 2

    async def test_unassign_refreshes_counts(self, db_session, make_user, make_prediction_list):
        admin = await make_user("admin")
        agent = await make_user("prediction_agent")
        prediction_list, leads = await make_prediction_list(3)
        service = AssignmentService(db_session)
        await service.assign_prediction_leads(prediction_list.id, [agent.id], admin)

        result = await service.unassign_prediction_leads([leads[0].id], admin)

        assert result == {"unassigned": 1}
        await db_session.refresh(prediction_list)
        assert prediction_list.assigned_count == 2
        unassigned = (await db_session.execute(
            select(PredictionLead).where(PredictionLead.assigned_agent_id.is_(None))
        )).scalars().all()
        assert [lead.id for lead in unassigned] == [leads[0].id]

    async def test_requires_agents(self, db_session, make_user, make_prediction_list):
        admin = await make_user("admin")
        prediction_list, _ = await make_prediction_list(1)
        with pytest.raises(ValidationFailed):
            await AssignmentService(db_session).assign_prediction_leads(prediction_list.id, [], admin)


class TestUserAdministration:
    def test_role_rows_join_on_user_id(self):
        configure_mappers()
        pairs = User.user_roles.property.local_remote_pairs
        assert [(local.name, remote.name) for local, remote in pairs] == [("id", "user_id")]

    async def test_roles_load_when_granted_by_another_user(self, db_session, make_user):
        admin = await make_user("admin")
        user = await make_user("agent")
        db_session.add(UserRole(user_id=user.id, role="warehouse", assigned_by=admin.id))
        await db_session.commit()

        loaded = (await db_session.execute(
            select(User).where(User.id == user.id).execution_options(populate_existing=True)
        )).scalar_one()
        assert loaded.roles == {"agent", "warehouse"}
        assert admin.roles == {"admin"}

    async def test_admin_sets_roles(self, db_session, make_user):
        admin = await make_user("admin")
        user = await make_user("agent")

        updated = await UserService(db_session).set_roles(user.id, ["warehouse", "agent"], admin)

        assert updated.roles == {"agent", "warehouse"}
        rows = (await db_session.execute(
            select(UserRole).where(UserRole.user_id == user.id)
        )).scalars().all()
        assert {r.role for r in rows} == {"agent", "warehouse"}
        assert all(r.assigned_by == admin.id for r in rows if r.role == "warehouse")

    async def test_cannot_change_own_roles(self, db_session, make_user):
        admin = await make_user("admin")
        with pytest.raises(Forbidden) as exc:
            await UserService(db_session).set_roles(admin.id, ["agent"], admin)
        assert exc.value.message == "Cannot change your own roles"

    async def test_manager_limited_grants(self, db_session, make_user):
        manager = await make_user("manager")
        user = await make_user("agent")
        service = UserService(db_session)

        with pytest.raises(Forbidden):
            await service.set_roles(user.id, ["admin"], manager)

        updated = await service.set_roles(user.id, ["prediction_agent"], manager)
        assert updated.roles == {"prediction_agent"}

    async def test_empty_role_set_rejected(self, db_session, make_user):
        admin = await make_user("admin")
        user = await make_user("agent")
        with pytest.raises(ValidationFailed):
            await UserService(db_session).set_roles(user.id, [], admin)

    async def test_toggle_active(self, db_session, make_user):
        manager = await make_user("manager")
        user = await make_user("agent")
        service = UserService(db_session)

        assert (await service.toggle_active(user.id, manager)).is_active is False
        assert (await service.toggle_active(user.id, manager)).is_active is True

    async def test_cannot_suspend_or_delete_self(self, db_session, make_user):
        admin = await make_user("admin")
        service = UserService(db_session)

        with pytest.raises(Forbidden) as exc:
            await service.toggle_active(admin.id, admin)
        assert exc.value.message == "Cannot suspend yourself"

        with pytest.raises(Forbidden) as exc:
            await service.delete_user(admin.id, admin)
        assert exc.value.message == "Cannot delete yourself"

    async def test_agent_cannot_suspend_others(self, db_session, make_user):
        agent = await make_user("agent")
        other = await make_user("agent")
        with pytest.raises(Forbidden):
            await UserService(db_session).toggle_active(other.id, agent)

    async def test_delete_user(self, db_session, make_user):
        admin = await make_user("admin")
        user = await make_user("agent")
        user_id = user.id

        await UserService(db_session).delete_user(user_id, admin)

        assert await db_session.get(User, user_id) is None
        rows = (await db_session.execute(select(UserRole).where(UserRole.user_id == user_id))).scalars().all()
        assert rows == []

    async def test_unknown_user(self, db_session, make_user):
        admin = await make_user("admin")
        with pytest.raises(NotFound):
            await UserService(db_session).toggle_active(uuid.uuid4(), admin)
