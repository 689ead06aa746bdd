from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import Field, field_validator

from app.models.user import RoleCode
from app.schemas.base import BaseResponseSchema, BaseUpdateSchema


class UserRolesUpdate(BaseUpdateSchema):
    """Replaces the user's whole role set."""
    roles: List[str] = Field(default_factory=list)

    @field_validator("roles")
    @classmethod
    def validate_roles(cls, v):
        unknown = [r for r in v if r not in RoleCode.values()]
        if unknown:
            raise ValueError(f"Unknown roles: {', '.join(unknown)}")
        return sorted(set(v))


class UserResponse(BaseResponseSchema):
    id: UUID
    email: str
    full_name: str
    is_active: bool
    roles: List[str] = []
    created_at: datetime

    @field_validator("roles", mode="before")
    @classmethod
    def sort_roles(cls, v):
        return sorted(v)


class CapabilitiesResponse(BaseResponseSchema):
    is_admin: bool
    is_manager: bool
    is_admin_or_manager: bool
    is_warehouse: bool
    is_agent: bool
    is_ads_admin: bool
    is_dual_role: bool


class CurrentUserResponse(UserResponse):
    capabilities: CapabilitiesResponse
    allowed_statuses: List[str]
