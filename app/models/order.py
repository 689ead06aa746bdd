import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, ForeignKey, Integer, Text, Numeric, Index, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

if TYPE_CHECKING:
    from app.models.product import Product


class OrderStatus(str, Enum):
    """Order status enumeration - call-center pipeline."""
    # Agent-working phase
    PENDING = "pending"
    TAKE = "take"
    CALL_AGAIN = "call_again"
    CONFIRMED = "confirmed"

    # Fulfillment phase
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    PAID = "paid"

    # Side branches
    RETURNED = "returned"
    TRASHED = "trashed"
    CANCELLED = "cancelled"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


class OrderSource(str, Enum):
    """Where an order came from."""
    MANUAL = "manual"
    INBOUND_LEAD = "inbound_lead"
    PREDICTION_LEAD = "prediction_lead"


class Order(Base):
    """
    Order model - the unit of fulfillment.
    Never physically deleted; trashed/cancelled orders stay for audit.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_orders_price_non_negative"),
        Index('ix_order_status_created', 'status', 'created_at'),
        Index('ix_order_agent_status', 'assigned_agent_id', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Order Identification
    display_id: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True
    )

    # Product (free text fallback when no catalog product is linked)
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True
    )
    product_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)

    # Customer
    customer_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    customer_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    customer_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, take, call_again, confirmed, shipped, delivered, paid, returned, trashed, cancelled"
    )

    # Assignment
    assigned_agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    assigned_agent_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Origin
    source_type: Mapped[str] = mapped_column(
        String(20),
        default=OrderSource.MANUAL.value,
        nullable=False,
        comment="manual, inbound_lead, prediction_lead"
    )
    inbound_lead_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("inbound_leads.id", ondelete="SET NULL"),
        unique=True,
        nullable=True
    )
    source_lead_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("prediction_leads.id", ondelete="SET NULL"),
        unique=True,
        nullable=True
    )

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Timestamps
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

    # Relationships
    product: Mapped[Optional["Product"]] = relationship("Product")
    status_history: Mapped[List["OrderHistory"]] = relationship(
        "OrderHistory",
        back_populates="order",
        order_by="OrderHistory.changed_at",
    )
    notes: Mapped[List["OrderNote"]] = relationship(
        "OrderNote",
        back_populates="order",
        order_by="OrderNote.created_at",
    )

    @property
    def is_customer_complete(self) -> bool:
        """Name, phone, city and address are all non-blank."""
        return all(
            (value or "").strip()
            for value in (
                self.customer_name,
                self.customer_phone,
                self.customer_city,
                self.customer_address,
            )
        )

    def __repr__(self) -> str:
        return f"<Order(display_id='{self.display_id}', status='{self.status}')>"


class OrderHistory(Base):
    """Order status change history. Append-only."""
    __tablename__ = "order_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    from_status: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True
    )
    to_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False
    )

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    changed_by_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<OrderHistory(from='{self.from_status}', to='{self.to_status}')>"


class OrderNote(Base):
    """Free-text note on an order. Append-only."""
    __tablename__ = "order_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    author_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="notes")


class OrderSequence(Base):
    """
    Counter behind Order.display_id.

    One row per sequence name; the row is locked while the next number is
    taken so concurrent creators never share a display id.
    """
    __tablename__ = "order_sequences"

    name: Mapped[str] = mapped_column(String(30), primary_key=True)
    current_number: Mapped[int] = mapped_column(Integer, nullable=False)
    prefix: Mapped[str] = mapped_column(String(10), default="ORD", nullable=False)
    padding: Mapped[int] = mapped_column(Integer, default=5, nullable=False)

    def format(self, number: int) -> str:
        return f"{self.prefix}-{str(number).zfill(self.padding)}"
