"""
Membership API Endpoints.

Read the customer's membership and assign or swap plans.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from backend.app.db.session import get_db
from backend.app.models.customer import Customer
from backend.app.schemas.billing import BillResponse
from backend.app.schemas.entitlements import (
    MembershipAssign, MembershipResponse, CurrentMembershipResponse, MembershipMutationResponse
)
from backend.app.core.dependencies import get_current_user, get_coordinator
from backend.app.core.guards import require_permission, Permission
from backend.app.core.exceptions import CustomerNotFound
from backend.app.domain.entitlements.coordinator import EntitlementCoordinator
from backend.app.domain.entitlements.membership_assignment import MembershipAssignment, display_status

router = APIRouter(prefix="/customers", tags=["Memberships"])


@router.get("/{customer_id}/membership", response_model=CurrentMembershipResponse)
async def get_membership(
    customer_id: int = Path(..., description="Customer ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    The customer's latest membership and its status as of today.

    A stored ACTIVE membership past its end date reads as EXPIRED.
    """
    if not await db.get(Customer, customer_id):
        raise CustomerNotFound(customer_id)

    membership = await MembershipAssignment.latest_membership(db, customer_id)
    return CurrentMembershipResponse(
        customer_id=customer_id,
        status=display_status(membership),
        membership=MembershipResponse.model_validate(membership) if membership else None
    )


@router.get("/{customer_id}/membership/history", response_model=List[MembershipResponse])
async def get_membership_history(
    customer_id: int = Path(..., description="Customer ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not await db.get(Customer, customer_id):
        raise CustomerNotFound(customer_id)
    return await MembershipAssignment.history(db, customer_id)


@router.post(
    "/{customer_id}/membership",
    response_model=MembershipMutationResponse,
    status_code=status.HTTP_201_CREATED
)
async def assign_membership(
    payload: MembershipAssign,
    customer_id: int = Path(..., description="Customer ID"),
    current_user: dict = Depends(require_permission(Permission.MEMBERSHIP_ASSIGN)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """
    Assign a plan, superseding the current membership.

    By default the plan price is billed as a MEMBERSHIP_SUBSCRIPTION bill in
    the same transaction; pass `create_bill=false` to skip billing.
    """
    result = await coordinator.assign_membership(
        customer_id,
        payload.membership_plan_id,
        payload.membership_start_date,
        payload.create_bill,
        payload.discount_percentage
    )
    membership, superseded, bill = result.value
    return MembershipMutationResponse(
        membership=MembershipResponse.model_validate(membership),
        superseded=MembershipResponse.model_validate(superseded) if superseded else None,
        bill=BillResponse.model_validate(bill) if bill else None,
        **MembershipMutationResponse.sync_fields(result.sync)
    )
