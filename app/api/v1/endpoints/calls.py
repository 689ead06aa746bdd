from typing import List, Optional
import uuid

from fastapi import APIRouter, Query, status

from app.api.deps import DB, CurrentUser
from app.models.call_log import CallContext
from app.schemas.call_log import (
    CallLogCreate,
    CallLogResponse,
    PhoneDuplicateCheck,
    PhoneDuplicate,
    PhoneDuplicateResponse,
)
from app.services.call_log_service import CallLogService


router = APIRouter(tags=["Calls"])


@router.post(
    "/call-logs",
    response_model=CallLogResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_call(
    data: CallLogCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Record a call outcome.

    On a prediction lead without an order the outcome also sets the lead
    status; interested and call_again claim the lead for the caller.
    """
    call = await CallLogService(db).log_call(data, current_user)
    return CallLogResponse.model_validate(call)


@router.get(
    "/call-logs",
    response_model=List[CallLogResponse],
)
async def list_call_logs(
    db: DB,
    current_user: CurrentUser,
    context_type: Optional[CallContext] = Query(None),
    context_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    calls = await CallLogService(db).list_calls(
        current_user,
        context_type=context_type.value if context_type else None,
        context_id=context_id,
        limit=limit,
    )
    return [CallLogResponse.model_validate(c) for c in calls]


@router.post(
    "/check-phone-duplicates",
    response_model=PhoneDuplicateResponse,
)
async def check_phone_duplicates(
    data: PhoneDuplicateCheck,
    db: DB,
    current_user: CurrentUser,
):
    """Orders and prediction leads that already use this phone number."""
    normalized, matches = await CallLogService(db).find_phone_duplicates(
        data.phone, current_user, exclude_order_id=data.exclude_order_id
    )
    return PhoneDuplicateResponse(
        normalized_phone=normalized,
        matches=[PhoneDuplicate(**m) for m in matches],
    )
