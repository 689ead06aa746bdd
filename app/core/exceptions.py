"""
Domain errors raised by the order/lead core.

Services raise these before any write so that a rejected mutation leaves
every row untouched. The API layer renders them via the handlers registered
in app.main; storage errors never travel through these classes.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for errors surfaced to the caller."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "type": self.kind, **self.details}


class ValidationFailed(DomainError):
    """Malformed or incomplete input, including the completeness gate."""
    kind = "validation_failed"
    status_code = 400


class Forbidden(DomainError):
    """Role gate or self-protection violation."""
    kind = "forbidden"
    status_code = 403


class NotFound(DomainError):
    """Referenced order, lead, product or agent does not exist."""
    kind = "not_found"
    status_code = 404


class InsufficientStock(DomainError):
    """Stock gate failure. Carries available vs required quantities."""
    kind = "insufficient_stock"
    status_code = 400

    def __init__(self, product_name: str, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient stock: {product_name} has {available} available, "
            f"but order requires {required}",
            details={"available": available, "required": required},
        )


class Conflict(DomainError):
    """Concurrent mutation could not be serialized."""
    kind = "conflict"
    status_code = 409
