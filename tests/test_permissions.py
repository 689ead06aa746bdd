"""Role matrix and transition gates, no database."""
import uuid
from types import SimpleNamespace

import pytest

from app.core.exceptions import Forbidden, ValidationFailed
from app.core.permissions import (
    AGENT_STATUSES,
    RoleSet,
    allowed_targets,
    ensure_can_bulk_update,
    ensure_can_grant_roles,
    ensure_can_set_status,
    ensure_can_work,
    ensure_not_self,
)
from app.models.order import OrderStatus
from app.models.user import RoleCode
from app.services import order_state_machine as osm


ALL_STATUSES = OrderStatus.values()


def _order(status="pending", complete=True):
    return SimpleNamespace(
        status=status,
        customer_name="Amina" if complete else "",
        customer_phone="0612345678" if complete else "",
        customer_city="Casablanca" if complete else "",
        customer_address="12 Rue des Fleurs" if complete else "  ",
        is_customer_complete=complete,
    )


class TestRoleSet:
    def test_admin_and_manager_may_set_every_status(self):
        for role in ("admin", "manager"):
            assert RoleSet([role]).allowed_statuses() == frozenset(ALL_STATUSES)

    @pytest.mark.parametrize("role", ["agent", "pending_agent", "prediction_agent", "ads_admin"])
    def test_non_admin_roles_get_agent_statuses(self, role):
        assert RoleSet([role]).allowed_statuses() == frozenset(AGENT_STATUSES)

    def test_warehouse_adds_shipped_and_paid(self):
        allowed = RoleSet(["warehouse"]).allowed_statuses()
        assert allowed == frozenset(AGENT_STATUSES) | {"shipped", "paid"}
        assert "delivered" not in allowed
        assert "cancelled" not in allowed

    def test_empty_role_set_still_gets_agent_statuses(self):
        assert RoleSet([]).allowed_statuses() == frozenset(AGENT_STATUSES)

    def test_roles_union(self):
        roles = RoleSet(["agent", "warehouse"])
        assert roles.can_set_status("paid")
        assert not roles.can_set_status("trashed")

    def test_dual_role(self):
        assert RoleSet(["admin", "agent"]).is_dual_role
        assert not RoleSet(["admin"]).is_dual_role
        assert not RoleSet(["agent"]).is_dual_role

    def test_accepts_enum_members(self):
        roles = RoleSet([RoleCode.WAREHOUSE])
        assert roles.is_warehouse

    def test_capabilities(self):
        caps = RoleSet(["manager", "prediction_agent"]).capabilities()
        assert caps["is_manager"] is True
        assert caps["is_admin_or_manager"] is True
        assert caps["is_agent"] is True
        assert caps["is_admin"] is False
        assert caps["is_dual_role"] is False

    def test_current_status_does_not_narrow_targets(self):
        for current in ALL_STATUSES:
            assert allowed_targets(current, ["agent"]) == frozenset(AGENT_STATUSES)


class TestGuards:
    def test_forbidden_status_message_and_details(self):
        with pytest.raises(Forbidden) as exc:
            ensure_can_set_status(["agent"], "shipped")
        assert exc.value.message == "You can only set status to: pending, take, call_again, confirmed"
        assert exc.value.details["allowed_statuses"] == sorted(AGENT_STATUSES)

    def test_warehouse_message_lists_its_own_statuses(self):
        with pytest.raises(Forbidden) as exc:
            ensure_can_set_status(["warehouse"], "cancelled")
        assert exc.value.message == (
            "You can only set status to: pending, take, call_again, confirmed, shipped, paid"
        )
        assert exc.value.details["allowed_statuses"] == sorted(
            ["pending", "take", "call_again", "confirmed", "shipped", "paid"]
        )

    def test_agents_work_only_their_own_or_unassigned_rows(self):
        owner, other = uuid.uuid4(), uuid.uuid4()
        ensure_can_work(["agent"], None, other)
        ensure_can_work(["agent"], owner, owner)
        ensure_can_work(["manager"], owner, other)
        with pytest.raises(Forbidden) as exc:
            ensure_can_work(["agent", "warehouse"], owner, other, subject="order")
        assert exc.value.message == "This order is assigned to another agent"

    def test_bulk_requires_fulfillment_roles(self):
        ensure_can_bulk_update(["warehouse"])
        ensure_can_bulk_update(["manager"])
        with pytest.raises(Forbidden):
            ensure_can_bulk_update(["agent", "ads_admin"])

    def test_manager_grant_restriction(self):
        ensure_can_grant_roles(["manager"], ["pending_agent", "prediction_agent"])
        with pytest.raises(Forbidden) as exc:
            ensure_can_grant_roles(["manager"], ["pending_agent", "admin"])
        assert exc.value.message == "Managers can only assign pending_agent or prediction_agent roles"
        assert exc.value.details["disallowed_roles"] == ["admin"]

    def test_admin_may_grant_anything(self):
        ensure_can_grant_roles(["admin"], RoleCode.values())

    def test_agents_cannot_grant(self):
        with pytest.raises(Forbidden):
            ensure_can_grant_roles(["agent"], ["agent"])

    @pytest.mark.parametrize("action,message", [
        ("change_roles", "Cannot change your own roles"),
        ("suspend", "Cannot suspend yourself"),
        ("delete", "Cannot delete yourself"),
    ])
    def test_self_protection(self, action, message):
        me = uuid.uuid4()
        with pytest.raises(Forbidden) as exc:
            ensure_not_self(me, me, action)
        assert exc.value.message == message
        ensure_not_self(me, uuid.uuid4(), action)


class TestTransitionGates:
    @pytest.mark.parametrize("roles", [
        ["admin"], ["manager"], ["agent"], ["pending_agent"],
        ["prediction_agent"], ["warehouse"], ["ads_admin"], ["agent", "warehouse"],
    ])
    def test_role_gate_accepts_exactly_allowed_statuses(self, roles):
        allowed = RoleSet(roles).allowed_statuses()
        for current in ALL_STATUSES:
            for target in ALL_STATUSES:
                order = _order(current, complete=True)
                if target == current or target in allowed:
                    osm.validate_transition(order, target, roles)
                else:
                    with pytest.raises(Forbidden):
                        osm.validate_transition(order, target, roles)

    @pytest.mark.parametrize("target", sorted(osm.COMPLETENESS_REQUIRED))
    def test_completeness_gate(self, target):
        with pytest.raises(ValidationFailed) as exc:
            osm.validate_transition(_order("pending", complete=False), target, ["admin"])
        assert exc.value.message == osm.COMPLETENESS_MESSAGE

    @pytest.mark.parametrize("target", ["pending", "take", "call_again", "delivered", "trashed"])
    def test_statuses_without_completeness_requirement(self, target):
        osm.validate_transition(_order("confirmed", complete=False), target, ["admin"])

    def test_role_gate_runs_before_completeness(self):
        with pytest.raises(Forbidden):
            osm.validate_transition(_order("pending", complete=False), "shipped", ["agent"])

    def test_same_status_passes_without_gates(self):
        osm.validate_transition(_order("shipped", complete=False), "shipped", ["agent"])

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationFailed) as exc:
            osm.validate_transition(_order(), "lost", ["admin"])
        assert exc.value.details["valid_statuses"] == ALL_STATUSES

    def test_allowed_transitions_exclude_current(self):
        assert osm.get_allowed_transitions("take", ["agent"]) == ["pending", "call_again", "confirmed"]


class TestStockAndLockRules:
    def test_stock_taken_only_on_entry_into_confirmed(self):
        product_id = uuid.uuid4()
        assert osm.requires_stock_deduction("pending", "confirmed", product_id)
        assert osm.requires_stock_deduction(None, "confirmed", product_id)
        assert not osm.requires_stock_deduction("confirmed", "confirmed", product_id)
        assert not osm.requires_stock_deduction("confirmed", "shipped", product_id)
        assert not osm.requires_stock_deduction("pending", "confirmed", None)

    def test_locked_statuses(self):
        assert [s for s in ALL_STATUSES if osm.is_locked(s)] == ["shipped", "delivered", "paid"]


class TestBulkSkipRules:
    def test_same_status(self):
        assert osm.bulk_skip_reason("shipped", "shipped") == "already in target status"

    def test_cancelled_never_paid(self):
        assert osm.bulk_skip_reason("cancelled", "paid") == "cancelled orders cannot be marked paid"

    @pytest.mark.parametrize("current", ["pending", "take", "call_again", "delivered", "returned", "trashed"])
    def test_paid_only_from_shipped_or_confirmed(self, current):
        assert osm.bulk_skip_reason(current, "paid") == "only shipped or confirmed orders can be marked paid"

    @pytest.mark.parametrize("current", ["shipped", "confirmed"])
    def test_payable(self, current):
        assert osm.bulk_skip_reason(current, "paid") is None

    def test_other_targets_not_restricted(self):
        assert osm.bulk_skip_reason("pending", "cancelled") is None
        assert osm.bulk_skip_reason("paid", "returned") is None
