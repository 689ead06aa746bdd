import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

if TYPE_CHECKING:
    from app.models.product import Product


class StockMovementType(str, Enum):
    """Stock movement type enum."""
    ORDER_DEDUCTION = "order_deduction"  # Order entered confirmed
    RESTOCK = "restock"  # Goods received from supplier
    MANUAL_ADJUST = "manual_adjust"  # Stock count correction


class StockMovement(Base):
    """
    Stock movement ledger. Append-only.

    Replaying a product's movements in creation order reproduces its
    stock_quantity.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint(
            "new_stock = previous_stock + change_amount",
            name="ck_stock_movements_balance"
        ),
        CheckConstraint("new_stock >= 0", name="ck_stock_movements_non_negative"),
        Index("ix_stock_movements_product_created", "product_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )

    movement_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="order_deduction, restock, manual_adjust"
    )

    # Quantity (positive for in, negative for out)
    change_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Related documents
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True
    )
    supplier_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # User
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product")

    def __repr__(self) -> str:
        return f"<StockMovement({self.movement_type} {self.change_amount:+d}: {self.previous_stock}->{self.new_stock})>"
