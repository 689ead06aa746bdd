import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class PredictionLeadStatus(str, Enum):
    """Contact outcome of a prediction-list lead."""
    NOT_CONTACTED = "not_contacted"
    NO_ANSWER = "no_answer"
    INTERESTED = "interested"
    NOT_INTERESTED = "not_interested"
    CALL_AGAIN = "call_again"
    CONFIRMED = "confirmed"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


class InboundLeadStatus(str, Enum):
    """Status of a webhook lead, mirrored from its order."""
    PENDING = "pending"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    REJECTED = "rejected"


class WebhookStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class PredictionList(Base):
    """An uploaded contact list."""
    __tablename__ = "prediction_lists"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Cached projections, recomputed in the transaction that changes leads
    total_records: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    assigned_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    leads: Mapped[List["PredictionLead"]] = relationship(
        "PredictionLead",
        back_populates="prediction_list",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PredictionList(name='{self.name}', records={self.total_records})>"


class PredictionLead(Base):
    """
    One row of a prediction list.

    Once an order has been promoted from the lead (Order.source_lead_id),
    the order status is the source of truth.
    """
    __tablename__ = "prediction_leads"
    __table_args__ = (
        Index("ix_prediction_leads_list_agent", "list_id", "assigned_agent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    list_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("prediction_lists.id", ondelete="CASCADE"),
        nullable=False
    )

    # Contact
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    telephone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Product hint
    product: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=PredictionLeadStatus.NOT_CONTACTED.value,
        nullable=False,
        index=True
    )

    # Assignment
    assigned_agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    assigned_agent_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    prediction_list: Mapped["PredictionList"] = relationship(
        "PredictionList", back_populates="leads"
    )

    def __repr__(self) -> str:
        return f"<PredictionLead(name='{self.name}', status='{self.status}')>"


class Webhook(Base):
    """Landing-page endpoint that feeds inbound leads."""
    __tablename__ = "webhooks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=WebhookStatus.ACTIVE.value, nullable=False
    )
    # Cached projection of inbound leads referencing this webhook
    total_leads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Webhook(slug='{self.slug}', status='{self.status}')>"


class InboundLead(Base):
    """Lead created by a webhook submission. Paired 1:1 with an order."""
    __tablename__ = "inbound_leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=InboundLeadStatus.PENDING.value,
        nullable=False,
        index=True
    )
    source: Mapped[str] = mapped_column(String(100), default="landing_page", nullable=False)
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    webhook_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("webhooks.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<InboundLead(name='{self.name}', status='{self.status}')>"
