import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class CallOutcome(str, Enum):
    """Outcome an agent records after a call."""
    NO_ANSWER = "no_answer"
    INTERESTED = "interested"
    NOT_INTERESTED = "not_interested"
    WRONG_NUMBER = "wrong_number"
    CALL_AGAIN = "call_again"

    @classmethod
    def values(cls) -> List[str]:
        return [o.value for o in cls]


class CallContext(str, Enum):
    """What the call was about."""
    ORDER = "order"
    PREDICTION_LEAD = "prediction_lead"

    @classmethod
    def values(cls) -> List[str]:
        return [c.value for c in cls]


class CallLog(Base):
    """
    One call made by an agent.

    context_id points at an order or a prediction lead depending on
    context_type, so it carries no foreign key.
    """
    __tablename__ = "call_logs"
    __table_args__ = (
        CheckConstraint(
            "context_type IN ('order', 'prediction_lead')",
            name="ck_call_logs_context_type",
        ),
        Index("ix_call_logs_context", "context_type", "context_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    agent_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    context_type: Mapped[str] = mapped_column(String(20), nullable=False)
    context_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    outcome: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="no_answer, interested, not_interested, wrong_number, call_again"
    )
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Lead status written because of this call, if any
    lead_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<CallLog(context='{self.context_type}', outcome='{self.outcome}')>"
