"""
Role-based authorization matrix.

Pure mapping from a user's role set to capability predicates and the set of
order statuses the user may set. No I/O; every mutating service consults it
before touching a row.
"""
from typing import Iterable, FrozenSet, Optional
import uuid

from app.core.exceptions import Forbidden
from app.models.user import RoleCode
from app.models.order import OrderStatus


AGENT_ROLES: FrozenSet[str] = frozenset({
    RoleCode.AGENT.value,
    RoleCode.PENDING_AGENT.value,
    RoleCode.PREDICTION_AGENT.value,
})

# Statuses any authenticated non-admin actor may set
AGENT_STATUSES = (
    OrderStatus.PENDING.value,
    OrderStatus.TAKE.value,
    OrderStatus.CALL_AGAIN.value,
    OrderStatus.CONFIRMED.value,
)

# Added on top of AGENT_STATUSES for warehouse staff
WAREHOUSE_STATUSES = (
    OrderStatus.SHIPPED.value,
    OrderStatus.PAID.value,
)

# Roles a manager (without admin) may grant
MANAGER_GRANTABLE_ROLES: FrozenSet[str] = frozenset({
    RoleCode.PENDING_AGENT.value,
    RoleCode.PREDICTION_AGENT.value,
})


class RoleSet:
    """
    Capability checker over a set of role codes.
    Roles are not exclusive; a user may be admin and agent at once.
    """

    def __init__(self, roles: Iterable[str]):
        self.roles: FrozenSet[str] = frozenset(
            r.value if isinstance(r, RoleCode) else str(r) for r in roles
        )

    def has_role(self, role_code: str) -> bool:
        return role_code in self.roles

    @property
    def is_admin(self) -> bool:
        return RoleCode.ADMIN.value in self.roles

    @property
    def is_manager(self) -> bool:
        return RoleCode.MANAGER.value in self.roles

    @property
    def is_admin_or_manager(self) -> bool:
        return self.is_admin or self.is_manager

    @property
    def is_warehouse(self) -> bool:
        return RoleCode.WAREHOUSE.value in self.roles

    @property
    def is_agent(self) -> bool:
        """agent, pending_agent or prediction_agent."""
        return bool(self.roles & AGENT_ROLES)

    @property
    def is_ads_admin(self) -> bool:
        return RoleCode.ADS_ADMIN.value in self.roles

    @property
    def is_dual_role(self) -> bool:
        """Admin who also works leads; sees personal metrics next to global ones."""
        return self.is_admin and self.is_agent

    def allowed_statuses(self) -> FrozenSet[str]:
        """Order statuses this role set may set."""
        if self.is_admin_or_manager:
            return frozenset(OrderStatus.values())
        allowed = set(AGENT_STATUSES)
        if self.is_warehouse:
            allowed.update(WAREHOUSE_STATUSES)
        return frozenset(allowed)

    def can_set_status(self, target_status: str) -> bool:
        return target_status in self.allowed_statuses()

    def capabilities(self) -> dict:
        return {
            "is_admin": self.is_admin,
            "is_manager": self.is_manager,
            "is_admin_or_manager": self.is_admin_or_manager,
            "is_warehouse": self.is_warehouse,
            "is_agent": self.is_agent,
            "is_ads_admin": self.is_ads_admin,
            "is_dual_role": self.is_dual_role,
        }

    def __repr__(self) -> str:
        return f"<RoleSet({sorted(self.roles)})>"


def allowed_targets(current_status: Optional[str], roles: Iterable[str]) -> FrozenSet[str]:
    """
    Statuses reachable by this role set from current_status.

    Every status is reachable from every other; the current status does not
    narrow the set.
    """
    return RoleSet(roles).allowed_statuses()


# ==================== GUARDS ====================

def ensure_can_set_status(roles: Iterable[str], target_status: str) -> None:
    role_set = roles if isinstance(roles, RoleSet) else RoleSet(roles)
    if not role_set.can_set_status(target_status):
        allowed = role_set.allowed_statuses()
        ordered = [s for s in OrderStatus.values() if s in allowed]
        raise Forbidden(
            f"You can only set status to: {', '.join(ordered)}",
            details={"allowed_statuses": sorted(allowed)},
        )


def ensure_admin_or_manager(roles: Iterable[str]) -> None:
    role_set = roles if isinstance(roles, RoleSet) else RoleSet(roles)
    if not role_set.is_admin_or_manager:
        raise Forbidden("Admin or manager role required")


def ensure_admin(roles: Iterable[str]) -> None:
    role_set = roles if isinstance(roles, RoleSet) else RoleSet(roles)
    if not role_set.is_admin:
        raise Forbidden("Admin role required")


def ensure_can_bulk_update(roles: Iterable[str]) -> None:
    role_set = roles if isinstance(roles, RoleSet) else RoleSet(roles)
    if not (role_set.is_admin_or_manager or role_set.is_warehouse):
        raise Forbidden("Admin, manager or warehouse role required")


def ensure_can_grant_roles(roles: Iterable[str], requested: Iterable[str]) -> None:
    """Managers without admin may only grant pending_agent and prediction_agent."""
    role_set = roles if isinstance(roles, RoleSet) else RoleSet(roles)
    ensure_admin_or_manager(role_set)
    if role_set.is_admin:
        return
    disallowed = set(requested) - MANAGER_GRANTABLE_ROLES
    if disallowed:
        raise Forbidden(
            "Managers can only assign pending_agent or prediction_agent roles",
            details={"disallowed_roles": sorted(disallowed)},
        )


SELF_ACTION_MESSAGES = {
    "change_roles": "Cannot change your own roles",
    "suspend": "Cannot suspend yourself",
    "delete": "Cannot delete yourself",
}


def ensure_not_self(actor_id: uuid.UUID, target_id: uuid.UUID, action: str) -> None:
    """
    Self-protection: nobody changes their own role set, suspends or deletes
    their own account. Applies to admins too.
    """
    if actor_id == target_id:
        raise Forbidden(SELF_ACTION_MESSAGES.get(action, "Cannot perform this action on yourself"))


def ensure_can_work(
    roles: Iterable[str],
    assigned_agent_id: Optional[uuid.UUID],
    actor_id: uuid.UUID,
    subject: str = "lead",
) -> None:
    """Agents work unassigned rows and their own; admins and managers work all."""
    role_set = roles if isinstance(roles, RoleSet) else RoleSet(roles)
    if role_set.is_admin_or_manager:
        return
    if assigned_agent_id is not None and assigned_agent_id != actor_id:
        raise Forbidden(f"This {subject} is assigned to another agent")
