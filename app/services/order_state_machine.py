"""
Order State Machine

This module is the SINGLE SOURCE OF TRUTH for order status rules.
OrderService executes transitions; the rules live here.

Any status is reachable from any other. Each request passes two
independent gates:
- Role gate: which targets the actor's role set may set
- Completeness gate: customer contact data required for some targets
"""

from typing import Iterable, List, Optional, FrozenSet

from app.core.exceptions import ValidationFailed
from app.core.permissions import allowed_targets, ensure_can_set_status
from app.models.order import OrderStatus


# =============================================================================
# STATUS GROUPS
# =============================================================================

AGENT_PHASE: FrozenSet[str] = frozenset({
    OrderStatus.PENDING.value,
    OrderStatus.TAKE.value,
    OrderStatus.CALL_AGAIN.value,
    OrderStatus.CONFIRMED.value,
})

FULFILLMENT_PHASE: FrozenSet[str] = frozenset({
    OrderStatus.CONFIRMED.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.PAID.value,
})

SIDE_BRANCHES: FrozenSet[str] = frozenset({
    OrderStatus.RETURNED.value,
    OrderStatus.TRASHED.value,
    OrderStatus.CANCELLED.value,
})

# Targets that need name, phone, city and address
COMPLETENESS_REQUIRED: FrozenSet[str] = frozenset({
    OrderStatus.CONFIRMED.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.RETURNED.value,
    OrderStatus.PAID.value,
    OrderStatus.CANCELLED.value,
})

# Product, price and quantity are frozen in these statuses
LOCKED_STATUSES: FrozenSet[str] = frozenset({
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.PAID.value,
})

# Targets allowed in a bulk update
BULK_TARGETS: FrozenSet[str] = frozenset({
    OrderStatus.SHIPPED.value,
    OrderStatus.PAID.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.RETURNED.value,
})

# Statuses an order may be bulk-marked paid from
BULK_PAYABLE_FROM: FrozenSet[str] = frozenset({
    OrderStatus.SHIPPED.value,
    OrderStatus.CONFIRMED.value,
})

COMPLETENESS_MESSAGE = (
    "Name, Telephone, City, and Address must be filled before changing to this status"
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def is_valid_status(status: str) -> bool:
    return status in OrderStatus.values()


def validate_status(status: str) -> None:
    if not is_valid_status(status):
        raise ValidationFailed(
            f"Invalid status '{status}'",
            details={"valid_statuses": OrderStatus.values()},
        )


def requires_completeness(target_status: str) -> bool:
    """Does moving into this status need complete customer data?"""
    return target_status in COMPLETENESS_REQUIRED


def requires_stock_deduction(current_status: Optional[str], target_status: str, product_id) -> bool:
    """Stock is taken only on entry into confirmed, and only for catalog products."""
    return (
        target_status == OrderStatus.CONFIRMED.value
        and current_status != OrderStatus.CONFIRMED.value
        and product_id is not None
    )


def is_locked(status: str) -> bool:
    """Are product, price and quantity frozen?"""
    return status in LOCKED_STATUSES


def check_completeness(order, target_status: str) -> None:
    if requires_completeness(target_status) and not order.is_customer_complete:
        raise ValidationFailed(COMPLETENESS_MESSAGE)


def validate_transition(order, target_status: str, roles: Iterable[str]) -> None:
    """
    Run both gates. Raises Forbidden or ValidationFailed.

    Called before any write; a same-status request passes and is treated
    as a no-op by the executor.
    """
    validate_status(target_status)
    if order.status == target_status:
        return
    ensure_can_set_status(roles, target_status)
    check_completeness(order, target_status)


def get_allowed_transitions(current_status: str, roles: Iterable[str]) -> List[str]:
    """Statuses this actor may move the order to, in pipeline order."""
    allowed = allowed_targets(current_status, roles)
    return [s for s in OrderStatus.values() if s in allowed and s != current_status]


# =============================================================================
# BULK SAFETY RULES
# =============================================================================

def bulk_skip_reason(current_status: str, target_status: str) -> Optional[str]:
    """Why a bulk update should leave this order alone, or None."""
    if current_status == target_status:
        return "already in target status"
    if target_status == OrderStatus.PAID.value:
        if current_status == OrderStatus.CANCELLED.value:
            return "cancelled orders cannot be marked paid"
        if current_status not in BULK_PAYABLE_FROM:
            return "only shipped or confirmed orders can be marked paid"
    return None
