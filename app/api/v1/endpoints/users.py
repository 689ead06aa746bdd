import uuid

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser, Roles
from app.models.user import User
from app.schemas.user import (
    UserRolesUpdate,
    UserResponse,
    CurrentUserResponse,
    CapabilitiesResponse,
)
from app.services.user_service import UserService


router = APIRouter(tags=["Users"])


def _build_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
        roles=list(user.roles),
        created_at=user.created_at,
    )


@router.get(
    "/me",
    response_model=CurrentUserResponse,
)
async def get_me(
    current_user: CurrentUser,
    roles: Roles,
):
    """Current user's role set, capability flags and settable statuses."""
    return CurrentUserResponse(
        **_build_user_response(current_user).model_dump(),
        capabilities=CapabilitiesResponse(**roles.capabilities()),
        allowed_statuses=sorted(roles.allowed_statuses()),
    )


@router.put(
    "/{user_id}/roles",
    response_model=UserResponse,
)
async def set_user_roles(
    user_id: uuid.UUID,
    data: UserRolesUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Replace a user's role set.
    Managers may only grant pending_agent and prediction_agent.
    Nobody may change their own roles.
    """
    user = await UserService(db).set_roles(user_id, data.roles, current_user)
    return _build_user_response(user)


@router.post(
    "/{user_id}/toggle-active",
    response_model=UserResponse,
)
async def toggle_user_active(
    user_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    user = await UserService(db).toggle_active(user_id, current_user)
    return _build_user_response(user)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_user(
    user_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    await UserService(db).delete_user(user_id, current_user)
