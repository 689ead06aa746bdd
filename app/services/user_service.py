"""User administration with self-protection."""
from typing import List
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound, ValidationFailed
from app.core.permissions import (
    ensure_admin_or_manager,
    ensure_can_grant_roles,
    ensure_not_self,
)
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
    """
    Role set changes, suspension and deletion of staff accounts.

    Nobody may do any of these to their own account, admins included.
    The self check runs before the role gate.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFound("User not found", details={"user_id": str(user_id)})
        return user

    async def set_roles(self, user_id: uuid.UUID, roles: List[str], actor: User) -> User:
        """Replace a user's whole role set."""
        ensure_not_self(actor.id, user_id, "change_roles")
        ensure_can_grant_roles(actor.roles, roles)
        if not roles:
            raise ValidationFailed("At least one role is required")

        user = await self.get_user(user_id)
        user.user_roles.clear()
        await self.db.flush()
        for role in sorted(set(roles)):
            user.user_roles.append(UserRole(role=role, assigned_by=actor.id))

        await self.db.commit()
        logger.info("Roles of %s set to %s by %s", user.email, sorted(set(roles)), actor.email)
        return user

    async def toggle_active(self, user_id: uuid.UUID, actor: User) -> User:
        ensure_not_self(actor.id, user_id, "suspend")
        ensure_admin_or_manager(actor.roles)

        user = await self.get_user(user_id)
        user.is_active = not user.is_active

        await self.db.commit()
        logger.info(
            "User %s %s by %s",
            user.email, "reactivated" if user.is_active else "suspended", actor.email,
        )
        return user

    async def delete_user(self, user_id: uuid.UUID, actor: User) -> None:
        """
        Remove the account. Orders, history and ledger rows keep their
        denormalized names; their user references become NULL.
        """
        ensure_not_self(actor.id, user_id, "delete")
        ensure_admin_or_manager(actor.roles)

        user = await self.get_user(user_id)
        email = user.email
        await self.db.delete(user)
        await self.db.commit()
        logger.info("User %s deleted by %s", email, actor.email)
