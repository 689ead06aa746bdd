"""Call outcomes, their effect on prediction leads, and phone duplicate lookup."""
import pytest
from sqlalchemy import select

from app.core.exceptions import Forbidden
from app.models.call_log import CallLog
from app.schemas.call_log import CallLogCreate
from app.services.call_log_service import CallLogService, normalize_phone
from app.services.lead_promotion_service import LeadPromotionService


def _lead_call(lead, outcome, notes=""):
    return CallLogCreate(context_type="prediction_lead", context_id=lead.id, outcome=outcome, notes=notes)


async def _calls(session):
    return list((await session.execute(select(CallLog))).scalars().all())


class TestLeadOutcomes:
    @pytest.mark.parametrize("outcome,lead_status", [
        ("no_answer", "no_answer"),
        ("interested", "interested"),
        ("not_interested", "not_interested"),
        ("call_again", "not_contacted"),
    ])
    async def test_outcome_sets_lead_status(self, db_session, make_user, make_prediction_list, outcome, lead_status):
        agent = await make_user("prediction_agent")
        _, (lead,) = await make_prediction_list(1, status="interested" if outcome == "call_again" else "not_contacted")

        call = await CallLogService(db_session).log_call(_lead_call(lead, outcome, " rang twice "), agent)

        assert call.lead_status == lead_status
        assert call.notes == "rang twice"
        assert call.agent_id == agent.id
        await db_session.refresh(lead)
        assert lead.status == lead_status

    @pytest.mark.parametrize("outcome", ["interested", "call_again"])
    async def test_claiming_outcomes_take_ownership(self, db_session, make_user, make_prediction_list, outcome):
        agent = await make_user("prediction_agent", full_name="Omar Agent")
        prediction_list, (lead, _) = await make_prediction_list(2)

        await CallLogService(db_session).log_call(_lead_call(lead, outcome), agent)

        await db_session.refresh(lead)
        await db_session.refresh(prediction_list)
        assert lead.assigned_agent_id == agent.id
        assert lead.assigned_agent_name == "Omar Agent"
        assert prediction_list.assigned_count == 1

    async def test_no_answer_does_not_claim(self, db_session, make_user, make_prediction_list):
        agent = await make_user("prediction_agent")
        _, (lead,) = await make_prediction_list(1)

        await CallLogService(db_session).log_call(_lead_call(lead, "no_answer"), agent)

        await db_session.refresh(lead)
        assert lead.assigned_agent_id is None

    async def test_admin_call_does_not_claim(self, db_session, make_user, make_prediction_list):
        admin = await make_user("admin")
        _, (lead,) = await make_prediction_list(1)

        await CallLogService(db_session).log_call(_lead_call(lead, "interested"), admin)

        await db_session.refresh(lead)
        assert lead.status == "interested"
        assert lead.assigned_agent_id is None

    async def test_wrong_number_only_logs(self, db_session, make_user, make_prediction_list):
        agent = await make_user("prediction_agent")
        _, (lead,) = await make_prediction_list(1)

        call = await CallLogService(db_session).log_call(_lead_call(lead, "wrong_number"), agent)

        assert call.lead_status is None
        await db_session.refresh(lead)
        assert lead.status == "not_contacted"
        assert len(await _calls(db_session)) == 1

    async def test_promoted_lead_keeps_following_its_order(self, db_session, make_user, make_prediction_list):
        agent = await make_user("prediction_agent")
        _, (lead,) = await make_prediction_list(1)
        await LeadPromotionService(db_session).update_prediction_lead(lead.id, {"status": "confirmed"}, agent)

        call = await CallLogService(db_session).log_call(_lead_call(lead, "not_interested"), agent)

        assert call.lead_status is None
        await db_session.refresh(lead)
        assert lead.status == "confirmed"

    async def test_cannot_log_on_another_agents_lead(self, db_session, make_user, make_prediction_list):
        owner = await make_user("prediction_agent")
        other = await make_user("prediction_agent")
        _, (lead,) = await make_prediction_list(1, assigned_agent_id=owner.id, assigned_agent_name=owner.full_name)

        with pytest.raises(Forbidden):
            await CallLogService(db_session).log_call(_lead_call(lead, "interested"), other)

        assert await _calls(db_session) == []


class TestOrderCalls:
    async def test_order_call_is_logged(self, db_session, make_user, make_order):
        agent = await make_user("agent")
        order = await make_order(status="take", assigned_agent_id=agent.id)

        call = await CallLogService(db_session).log_call(
            CallLogCreate(context_type="order", context_id=order.id, outcome="no_answer"), agent
        )

        assert call.context_type == "order"
        assert call.lead_status is None
        await db_session.refresh(order)
        assert order.status == "take"

    async def test_cannot_log_on_another_agents_order(self, db_session, make_user, make_order):
        owner = await make_user("agent")
        other = await make_user("agent")
        order = await make_order(assigned_agent_id=owner.id)

        with pytest.raises(Forbidden):
            await CallLogService(db_session).log_call(
                CallLogCreate(context_type="order", context_id=order.id, outcome="no_answer"), other
            )

    async def test_agents_list_only_their_own_calls(self, db_session, make_user, make_order):
        a = await make_user("agent")
        b = await make_user("agent")
        manager = await make_user("manager")
        order = await make_order()
        service = CallLogService(db_session)
        for agent in (a, b, a):
            await service.log_call(CallLogCreate(context_type="order", context_id=order.id, outcome="no_answer"), agent)

        assert len(await service.list_calls(a)) == 2
        assert len(await service.list_calls(b)) == 1
        assert len(await service.list_calls(manager, context_id=order.id)) == 3
        assert await service.list_calls(manager, context_type="prediction_lead") == []


class TestPhoneDuplicates:
    def test_normalize(self):
        assert normalize_phone(" +212 (6) 12-34.56 78 ") == "+212612345678"
        assert normalize_phone(None) == ""

    async def test_matches_orders_and_leads(self, db_session, make_user, make_order, make_prediction_list):
        admin = await make_user("admin")
        order = await make_order(customer_phone="06 12-34.56 78")
        await make_order(customer_phone="0699999999")
        await make_prediction_list(1, name="Karim", telephone="0612345678")

        normalized, matches = await CallLogService(db_session).find_phone_duplicates("0612 345 678", admin)

        assert normalized == "0612345678"
        assert {"source": "order", "source_id": order.display_id, "source_name": "Amina Benali"} in matches
        assert {"source": "prediction_lead", "source_id": "Karim", "source_name": "October campaign"} in matches
        assert len(matches) == 2

    async def test_excluded_order_and_short_numbers(self, db_session, make_user, make_order):
        admin = await make_user("admin")
        order = await make_order(customer_phone="0612345678")
        service = CallLogService(db_session)

        _, matches = await service.find_phone_duplicates("0612345678", admin, exclude_order_id=order.id)
        assert matches == []
        assert await service.find_phone_duplicates("12-34", admin) == ("1234", [])

    async def test_agents_only_see_their_own_orders(self, db_session, make_user, make_order):
        agent = await make_user("agent")
        await make_order(customer_phone="0612345678")
        mine = await make_order(customer_phone="0612345678", assigned_agent_id=agent.id)

        _, matches = await CallLogService(db_session).find_phone_duplicates("0612345678", agent)

        assert [m["source_id"] for m in matches] == [mine.display_id]


class TestCallEndpoints:
    async def test_log_call(self, client, make_user, make_prediction_list, auth_headers):
        agent = await make_user("prediction_agent")
        _, (lead,) = await make_prediction_list(1)

        response = await client.post(
            "/api/v1/call-logs",
            json={"context_type": "prediction_lead", "context_id": str(lead.id), "outcome": "interested"},
            headers=auth_headers(agent),
        )

        assert response.status_code == 201
        assert response.json()["lead_status"] == "interested"

        listed = await client.get("/api/v1/call-logs", headers=auth_headers(agent))
        assert [c["outcome"] for c in listed.json()] == ["interested"]

    async def test_unknown_outcome_is_422(self, client, make_user, make_prediction_list, auth_headers):
        agent = await make_user("prediction_agent")
        _, (lead,) = await make_prediction_list(1)
        response = await client.post(
            "/api/v1/call-logs",
            json={"context_type": "prediction_lead", "context_id": str(lead.id), "outcome": "hung_up"},
            headers=auth_headers(agent),
        )
        assert response.status_code == 422

    async def test_check_phone_duplicates(self, client, make_user, make_order, auth_headers):
        admin = await make_user("admin")
        order = await make_order(customer_phone="0612345678")

        response = await client.post(
            "/api/v1/check-phone-duplicates", json={"phone": "06 12 34 56 78"}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["normalized_phone"] == "0612345678"
        assert body["matches"] == [
            {"source": "order", "source_id": order.display_id, "source_name": "Amina Benali"}
        ]
