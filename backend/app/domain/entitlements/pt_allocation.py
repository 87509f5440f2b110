"""
PT Package Allocation (Domain Logic).

Per-customer PT package assignments with session counters. Assignment
creates the linked PT_PACKAGE bill; cancellation voids it. Both halves are
flushed into the caller's transaction so they commit or roll back together.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.clock import business_today, utc_now
from backend.app.core.exceptions import AllocationNotFound, AlreadyCancelled, NoSessionsRemaining
from backend.app.domain.billing.bill_ledger import BillLedger
from backend.app.domain.entitlements.catalog import CatalogReader
from backend.app.models.bill import Bill
from backend.app.models.billing_enums import BillType
from backend.app.models.enums import PtPackageStatus
from backend.app.models.pt_package import CustomerPtPackage


class PtPackageAllocation:

    @staticmethod
    async def get_allocation(db: AsyncSession, allocation_id: int) -> CustomerPtPackage:
        allocation = await db.get(CustomerPtPackage, allocation_id)
        if not allocation:
            raise AllocationNotFound(allocation_id)
        return allocation

    @staticmethod
    async def list_customer_allocations(
        db: AsyncSession,
        customer_id: int,
        status: Optional[PtPackageStatus] = None
    ) -> List[CustomerPtPackage]:
        query = select(CustomerPtPackage).where(CustomerPtPackage.customer_id == customer_id)
        if status:
            query = query.where(CustomerPtPackage.status == status)
        result = await db.execute(query.order_by(CustomerPtPackage.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def assign(
        db: AsyncSession,
        customer_id: int,
        pt_package_id: int,
        coach_id: Optional[int] = None,
        start_date: Optional[date] = None,
        discount_percentage: Union[int, str, Decimal] = 0
    ) -> Tuple[CustomerPtPackage, Bill]:
        """
        Allocate a PT package to a customer and bill for it.

        Flow:
        1. Resolve the catalog package (PtPackageNotFound)
        2. Create the PT_PACKAGE bill for the package price
        3. Create the allocation with sessions copied from the catalog

        Returns:
            (allocation, linked bill)
        """
        package = await CatalogReader.pt_package(db, pt_package_id)
        start_date = start_date or business_today()

        bill = await BillLedger.create_bill(
            db,
            customer_id=customer_id,
            bill_type=BillType.PT_PACKAGE,
            gross_amount=package.price,
            discount_percentage=discount_percentage,
            bill_date=start_date,
            notes=f"PT package: {package.name}",
            via_pt_assignment=True
        )

        allocation = CustomerPtPackage(
            customer_id=customer_id,
            pt_package_id=package.id,
            coach_id=coach_id,
            bill_id=bill.id,
            start_date=start_date,
            sessions_total=package.sessions_total,
            sessions_remaining=package.sessions_total,
            status=PtPackageStatus.ACTIVE
        )
        db.add(allocation)
        await db.flush()

        return allocation, bill

    @staticmethod
    async def cancel(db: AsyncSession, allocation_id: int) -> Tuple[CustomerPtPackage, Optional[Bill]]:
        """
        Cancel an active allocation and void its linked bill.

        The linked bill is voided even when PAID: cancellation is the one
        cascade allowed past the PAID lock.

        Raises:
            AllocationNotFound: Unknown allocation
            AlreadyCancelled: Allocation is CANCELLED or COMPLETED
        """
        allocation = await PtPackageAllocation.get_allocation(db, allocation_id)
        if allocation.status != PtPackageStatus.ACTIVE:
            raise AlreadyCancelled(allocation.id, allocation.status.value)

        allocation.status = PtPackageStatus.CANCELLED
        allocation.cancelled_at = utc_now()
        allocation.updated_at = allocation.cancelled_at
        await db.flush()

        bill = None
        if allocation.bill_id is not None:
            bill = await BillLedger.get_bill(db, allocation.bill_id)
            await BillLedger.void_bill(db, bill)

        return allocation, bill

    @staticmethod
    async def consume_session(db: AsyncSession, allocation_id: int) -> CustomerPtPackage:
        """
        Use one session; the allocation COMPLETES when the last one is used.

        Raises:
            AllocationNotFound: Unknown allocation
            AlreadyCancelled: Allocation was cancelled
            NoSessionsRemaining: Counter is already zero
        """
        allocation = await PtPackageAllocation.get_allocation(db, allocation_id)
        if allocation.status == PtPackageStatus.CANCELLED:
            raise AlreadyCancelled(allocation.id, allocation.status.value)
        if allocation.sessions_remaining <= 0:
            raise NoSessionsRemaining(allocation.id)

        allocation.sessions_remaining -= 1
        if allocation.sessions_remaining == 0:
            allocation.status = PtPackageStatus.COMPLETED
        allocation.updated_at = utc_now()
        await db.flush()

        return allocation
