"""
Membership Plan Catalog API Endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.schemas.entitlements import MembershipPlanCatalogResponse, MembershipPlanStatsResponse
from backend.app.core.dependencies import get_current_user
from backend.app.domain.entitlements.catalog import plan_statistics

router = APIRouter(prefix="/membership-plans", tags=["Membership Plans"])


@router.get("", response_model=MembershipPlanCatalogResponse)
async def list_membership_plans(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Plan catalog with read-time statistics.

    Active member counts and monthly revenue are computed from current
    memberships on every request, never stored.
    """
    stats = await plan_statistics(db)

    plans = [
        MembershipPlanStatsResponse(
            id=s.plan.id,
            plan_name=s.plan.plan_name,
            price=s.plan.price,
            plan_period=s.plan.plan_period,
            plan_interval=s.plan.plan_interval,
            features=s.plan.features or [],
            is_active=s.plan.is_active,
            active_members_count=s.active_members_count,
            monthly_revenue=s.monthly_revenue
        )
        for s in stats
    ]

    most_popular = max(stats, key=lambda s: s.active_members_count, default=None)

    return MembershipPlanCatalogResponse(
        plans=plans,
        total_plans=len(plans),
        total_active_members=sum(s.active_members_count for s in stats),
        total_monthly_revenue=sum(s.monthly_revenue for s in stats),
        most_popular_plan_id=most_popular.plan.id if most_popular and most_popular.active_members_count else None
    )
