import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from gymbook.core.pbac import require_permission
from gymbook.crud.crud_membership import membership_plan as crud_membership_plan
from gymbook.db.session import SessionDep
from gymbook.schemas import (
    CreditAdjustRequest,
    CreditAdjustResponse,
    CreditRefillResponse,
    CurrentUser,
    MembershipPlanCreate,
    MembershipPlanResponse,
    MembershipPlanUpdate,
    MembershipUsage,
)
from gymbook.services.credit_ledger import NotACreditsMembership, credit_ledger
from gymbook.services.membership_usage import membership_usage_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=MembershipUsage)
async def read_my_membership_usage(
    current_user: Annotated[CurrentUser, Depends(require_permission("read", "memberships"))],
    db: SessionDep,
) -> MembershipUsage:
    """Get the caller's plan and remaining booking allowance."""
    return await membership_usage_service.usage_summary(db, user_id=current_user.id)


@router.get("/plans", response_model=list[MembershipPlanResponse])
async def read_membership_plans(
    current_user: Annotated[CurrentUser, Depends(require_permission("read", "membership_plans"))],
    db: SessionDep,
    skip: int = 0,
    limit: int = 100,
) -> list[MembershipPlanResponse]:
    """Get all membership plans."""
    return await crud_membership_plan.get_multi(db, skip=skip, limit=limit)


@router.post("/plans", response_model=MembershipPlanResponse)
async def create_membership_plan(
    plan_in: MembershipPlanCreate,
    current_user: Annotated[CurrentUser, Depends(require_permission("create", "membership_plans"))],
    db: SessionDep,
) -> MembershipPlanResponse:
    """Create a membership plan."""
    plan = await crud_membership_plan.create(db, obj_in=plan_in)
    logger.info(f"User {current_user.id} created membership plan {plan.id} ({plan.name})")
    return plan


@router.put("/plans/{plan_id}", response_model=MembershipPlanResponse)
async def update_membership_plan(
    plan_id: UUID,
    plan_in: MembershipPlanUpdate,
    current_user: Annotated[CurrentUser, Depends(require_permission("update", "membership_plans"))],
    db: SessionDep,
) -> MembershipPlanResponse:
    """Update a membership plan. Only the fields sent are changed."""
    plan = await crud_membership_plan.get(db, id=plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Membership plan not found")
    plan = await crud_membership_plan.update(db, db_obj=plan, obj_in=plan_in)
    logger.info(f"User {current_user.id} updated membership plan {plan.id}: {sorted(plan_in.changes())}")
    return plan


@router.post("/credits", response_model=CreditAdjustResponse)
async def adjust_member_credits(
    adjust_in: CreditAdjustRequest,
    current_user: Annotated[CurrentUser, Depends(require_permission("update", "credits"))],
    db: SessionDep,
) -> CreditAdjustResponse:
    """Add, subtract or set the credit balance of a member."""
    try:
        change = await credit_ledger.adjust(
            db, user_id=adjust_in.user_id, amount=adjust_in.credits, action=adjust_in.action
        )
    except NotACreditsMembership as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CreditAdjustResponse(
        success=True,
        user_id=adjust_in.user_id,
        previous_credits=change.previous,
        new_credits=change.new,
        action=adjust_in.action,
        amount=adjust_in.credits,
    )


@router.post("/credits/refill", response_model=CreditRefillResponse)
async def refill_member_credits(
    current_user: Annotated[CurrentUser, Depends(require_permission("update", "credits"))],
    db: SessionDep,
) -> CreditRefillResponse:
    """Run the monthly credit refill for all credits memberships that are due."""
    refilled = await credit_ledger.refill_due(db)
    return CreditRefillResponse(refilled=refilled, run_at=datetime.utcnow())
