import uuid

from fastapi import APIRouter

from app.api.deps import DB, CurrentUser
from app.schemas.lead import (
    PredictionLeadUpdate,
    PredictionLeadResponse,
    PredictionLeadUpdateResponse,
    PredictionLeadAssign,
    PredictionLeadUnassign,
    PredictionAssignResponse,
    PredictionUnassignResponse,
)
from app.services.assignment_service import AssignmentService
from app.services.lead_promotion_service import LeadPromotionService


router = APIRouter(tags=["Prediction Leads"])


@router.patch(
    "/prediction-leads/{lead_id}",
    response_model=PredictionLeadUpdateResponse,
)
async def update_prediction_lead(
    lead_id: uuid.UUID,
    data: PredictionLeadUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Record a contact outcome or corrected details.

    Setting call_again or confirmed creates the lead's order the first time
    and moves it on later updates.
    """
    lead, order, created = await LeadPromotionService(db).update_prediction_lead(
        lead_id,
        data.model_dump(exclude_unset=True),
        current_user,
    )
    return PredictionLeadUpdateResponse(
        lead=PredictionLeadResponse.model_validate(lead),
        order_id=order.id if order else None,
        order_created=created,
    )


@router.post(
    "/prediction-leads/{lead_id}/take",
    response_model=PredictionLeadResponse,
)
async def take_prediction_lead(
    lead_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    lead = await LeadPromotionService(db).take_lead(lead_id, current_user)
    return PredictionLeadResponse.model_validate(lead)


@router.post(
    "/prediction-lists/{list_id}/assign",
    response_model=PredictionAssignResponse,
)
async def assign_prediction_leads(
    list_id: uuid.UUID,
    data: PredictionLeadAssign,
    db: DB,
    current_user: CurrentUser,
):
    """Spread the list's unassigned leads over the given agents. Admin or manager only."""
    result = await AssignmentService(db).assign_prediction_leads(
        list_id, data.agent_ids, current_user, count=data.count
    )
    return PredictionAssignResponse(**result)


@router.post(
    "/prediction-leads/unassign",
    response_model=PredictionUnassignResponse,
)
async def unassign_prediction_leads(
    data: PredictionLeadUnassign,
    db: DB,
    current_user: CurrentUser,
):
    result = await AssignmentService(db).unassign_prediction_leads(data.lead_ids, current_user)
    return PredictionUnassignResponse(**result)
