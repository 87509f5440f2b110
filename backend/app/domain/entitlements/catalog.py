"""
Catalog reads.

Narrow read-only view over membership plans and PT packages, plus the
read-time plan statistics (active members, normalised monthly revenue).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from backend.app.core.clock import business_today
from backend.app.core.exceptions import PlanNotFound, PtPackageNotFound
from backend.app.models.enums import MembershipStatus, PlanInterval
from backend.app.models.membership import Membership
from backend.app.models.membership_plan import MembershipPlan
from backend.app.models.pt_package import PtPackage

# Multiplier (numerator, denominator) that turns one period's price into a month
MONTHLY_FACTOR = {
    PlanInterval.DAYS: (30, 1),
    PlanInterval.WEEKS: (4, 1),
    PlanInterval.MONTHS: (1, 1),
    PlanInterval.YEARS: (1, 12),
}


@dataclass(frozen=True)
class CatalogEntry:
    id: int
    name: str
    price: int
    duration_value: Optional[int] = None
    duration_unit: Optional[PlanInterval] = None
    sessions_total: Optional[int] = None


@dataclass(frozen=True)
class PlanStats:
    plan: MembershipPlan
    active_members_count: int
    monthly_revenue: int


class CatalogReader:

    @staticmethod
    async def membership_plan(db: AsyncSession, plan_id: int) -> CatalogEntry:
        """
        Raises:
            PlanNotFound: Unknown or retired plan
        """
        plan = await db.get(MembershipPlan, plan_id)
        if not plan or not plan.is_active:
            raise PlanNotFound(plan_id)
        return CatalogEntry(
            id=plan.id,
            name=plan.plan_name,
            price=plan.price,
            duration_value=plan.plan_period,
            duration_unit=plan.plan_interval
        )

    @staticmethod
    async def pt_package(db: AsyncSession, package_id: int) -> CatalogEntry:
        """
        Raises:
            PtPackageNotFound: Unknown or retired package
        """
        package = await db.get(PtPackage, package_id)
        if not package or not package.is_active:
            raise PtPackageNotFound(package_id)
        return CatalogEntry(
            id=package.id,
            name=package.package_name,
            price=package.price,
            sessions_total=package.number_of_sessions
        )


def monthly_revenue(price: int, interval: PlanInterval, active_members: int) -> int:
    """Price x active members normalised to one month, rounded half-up to the centavo."""
    numerator, denominator = MONTHLY_FACTOR.get(interval, (1, 1))
    revenue = Decimal(price * active_members * numerator) / Decimal(denominator)
    return int(revenue.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def plan_statistics(db: AsyncSession, today: Optional[date] = None) -> List[PlanStats]:
    """
    Per-plan active member counts and monthly revenue, computed at read time.

    A member counts when their membership is ACTIVE and not past its end date.
    """
    today = today or business_today()

    counts_result = await db.execute(
        select(Membership.membership_plan_id, func.count(Membership.id))
        .where(
            Membership.status == MembershipStatus.ACTIVE,
            Membership.membership_end_date >= today
        )
        .group_by(Membership.membership_plan_id)
    )
    counts: Dict[int, int] = {plan_id: count for plan_id, count in counts_result.all()}

    plans_result = await db.execute(select(MembershipPlan).order_by(MembershipPlan.id))
    stats = []
    for plan in plans_result.scalars().all():
        active = counts.get(plan.id, 0)
        stats.append(PlanStats(
            plan=plan,
            active_members_count=active,
            monthly_revenue=monthly_revenue(plan.price, plan.plan_interval, active)
        ))
    return stats
