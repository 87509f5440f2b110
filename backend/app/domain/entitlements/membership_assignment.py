"""
Membership Assignment (Domain Logic).

One current membership per customer. Assigning a plan supersedes the
current membership; expiry by date is decided at read time only.
"""

from datetime import date, timedelta
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.clock import business_today, utc_now
from backend.app.core.exceptions import CustomerNotFound
from backend.app.domain.entitlements.catalog import CatalogReader
from backend.app.models.customer import Customer
from backend.app.models.enums import MembershipStatus, PlanInterval
from backend.app.models.membership import Membership


def compute_end_date(start_date: date, period: int, interval: PlanInterval) -> date:
    """
    End date of a membership starting on `start_date`.

    Month and year arithmetic clamps to the last day of a shorter month
    (Jan 31 + 1 month = Feb 28/29).
    """
    if interval == PlanInterval.DAYS:
        return start_date + timedelta(days=period)
    if interval == PlanInterval.WEEKS:
        return start_date + timedelta(weeks=period)
    if interval == PlanInterval.YEARS:
        return start_date + relativedelta(years=period)
    return start_date + relativedelta(months=period)


def display_status(membership: Optional[Membership], today: Optional[date] = None) -> MembershipStatus:
    """Read-time status: the stored row is not rewritten when it lapses."""
    if membership is None:
        return MembershipStatus.NONE
    today = today or business_today()
    if membership.status == MembershipStatus.ACTIVE and membership.membership_end_date >= today:
        return MembershipStatus.ACTIVE
    return MembershipStatus.EXPIRED


class MembershipAssignment:

    @staticmethod
    async def active_record(db: AsyncSession, customer_id: int) -> Optional[Membership]:
        """The stored ACTIVE row, whether or not its end date has passed."""
        result = await db.execute(
            select(Membership).where(
                Membership.customer_id == customer_id,
                Membership.status == MembershipStatus.ACTIVE
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def current_membership(
        db: AsyncSession,
        customer_id: int,
        today: Optional[date] = None
    ) -> Optional[Membership]:
        """ACTIVE membership whose end date is today or later, else None."""
        today = today or business_today()
        membership = await MembershipAssignment.active_record(db, customer_id)
        if membership and membership.membership_end_date >= today:
            return membership
        return None

    @staticmethod
    async def latest_membership(db: AsyncSession, customer_id: int) -> Optional[Membership]:
        """Most recent membership of any status, for display."""
        result = await db.execute(
            select(Membership)
            .where(Membership.customer_id == customer_id)
            .order_by(Membership.created_at.desc(), Membership.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def history(db: AsyncSession, customer_id: int) -> List[Membership]:
        result = await db.execute(
            select(Membership)
            .where(Membership.customer_id == customer_id)
            .order_by(Membership.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def assign(
        db: AsyncSession,
        customer_id: int,
        membership_plan_id: int,
        start_date: Optional[date] = None
    ) -> Tuple[Membership, Optional[Membership]]:
        """
        Put a customer on a plan, superseding their current membership.

        Flow:
        1. Resolve the plan (PlanNotFound)
        2. EXPIRE the stored ACTIVE row, if any, regardless of its end date
        3. Insert the new ACTIVE membership with its computed end date

        Returns:
            (new membership, superseded membership or None)
        """
        plan = await CatalogReader.membership_plan(db, membership_plan_id)

        if not await db.get(Customer, customer_id):
            raise CustomerNotFound(customer_id)

        start_date = start_date or business_today()

        superseded = await MembershipAssignment.active_record(db, customer_id)
        if superseded:
            superseded.status = MembershipStatus.EXPIRED
            superseded.superseded_at = utc_now()
            # Flushed before the insert so the one-active index never sees two rows
            await db.flush()

        membership = Membership(
            customer_id=customer_id,
            membership_plan_id=plan.id,
            membership_start_date=start_date,
            membership_end_date=compute_end_date(start_date, plan.duration_value, plan.duration_unit),
            status=MembershipStatus.ACTIVE
        )
        db.add(membership)
        await db.flush()

        return membership, superseded
