import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Set

from sqlalchemy import String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class RoleCode(str, Enum):
    """Role codes. A user holds a set of these, not a single one."""
    ADMIN = "admin"
    MANAGER = "manager"
    AGENT = "agent"
    PENDING_AGENT = "pending_agent"
    PREDICTION_AGENT = "prediction_agent"
    WAREHOUSE = "warehouse"
    ADS_ADMIN = "ads_admin"

    @classmethod
    def values(cls) -> List[str]:
        return [r.value for r in cls]


class User(Base):
    """
    Call-center staff member.
    Credentials live with the external auth provider; this row carries the
    profile, active flag and role set.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic info
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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
    user_roles: Mapped[List["UserRole"]] = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="[UserRole.user_id]",
        lazy="selectin",
    )

    @property
    def roles(self) -> Set[str]:
        """Get the set of role codes assigned to the user."""
        return {ur.role for ur in self.user_roles}

    def has_role(self, role_code: str) -> bool:
        """Check if user has a specific role."""
        return role_code in self.roles

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', name='{self.full_name}')>"


class UserRole(Base):
    """
    One (user, role) pair of a user's role set.
    """
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="admin, manager, agent, pending_agent, prediction_agent, warehouse, ads_admin"
    )

    # Audit fields
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="user_roles",
        foreign_keys=[user_id]
    )

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role='{self.role}')>"
