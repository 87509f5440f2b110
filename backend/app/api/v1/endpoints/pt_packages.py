"""
PT Package API Endpoints.

Assign, cancel and consume sessions of customer PT packages.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.models.customer import Customer
from backend.app.models.enums import PtPackageStatus
from backend.app.schemas.billing import BillResponse
from backend.app.schemas.entitlements import (
    PtPackageAssign, PtAllocationResponse, PtAllocationMutationResponse
)
from backend.app.core.dependencies import get_current_user, get_coordinator, get_synchronizer
from backend.app.core.guards import require_permission, Permission
from backend.app.core.exceptions import AllocationNotFound, CustomerNotFound
from backend.app.domain.entitlements.coordinator import EntitlementCoordinator
from backend.app.domain.entitlements.pt_allocation import PtPackageAllocation
from backend.app.services.consistency import ConsistencySynchronizer

customer_router = APIRouter(prefix="/customers", tags=["PT Packages"])
router = APIRouter(prefix="/pt-packages", tags=["PT Packages"])


def _mutation_response(result) -> PtAllocationMutationResponse:
    allocation, bill = result.value
    return PtAllocationMutationResponse(
        allocation=PtAllocationResponse.model_validate(allocation),
        bill=BillResponse.model_validate(bill) if bill else None,
        **PtAllocationMutationResponse.sync_fields(result.sync)
    )


@customer_router.get("/{customer_id}/pt-packages", response_model=List[PtAllocationResponse])
async def list_customer_pt_packages(
    customer_id: int = Path(..., description="Customer ID"),
    status_filter: Optional[PtPackageStatus] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    synchronizer: ConsistencySynchronizer = Depends(get_synchronizer),
    db: AsyncSession = Depends(get_db)
):
    if not await db.get(Customer, customer_id):
        raise CustomerNotFound(customer_id)

    if status_filter is not None:
        allocations = await PtPackageAllocation.list_customer_allocations(db, customer_id, status_filter)
        return allocations

    async def load():
        allocations = await PtPackageAllocation.list_customer_allocations(db, customer_id)
        return [PtAllocationResponse.model_validate(a) for a in allocations]

    return await synchronizer.read(synchronizer.keys.customer_pt_packages(customer_id), load)


@customer_router.post(
    "/{customer_id}/pt-packages",
    response_model=PtAllocationMutationResponse,
    status_code=status.HTTP_201_CREATED
)
async def assign_pt_package(
    payload: PtPackageAssign,
    customer_id: int = Path(..., description="Customer ID"),
    current_user: dict = Depends(require_permission(Permission.PT_PACKAGE_ASSIGN)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """Allocate a PT package and create its PT_PACKAGE bill in one transaction."""
    result = await coordinator.assign_pt_package(
        customer_id,
        payload.pt_package_id,
        payload.coach_id,
        payload.start_date,
        payload.discount_percentage
    )
    return _mutation_response(result)


@customer_router.delete(
    "/{customer_id}/pt-packages/{allocation_id}",
    response_model=PtAllocationMutationResponse
)
async def cancel_pt_package(
    customer_id: int = Path(..., description="Customer ID"),
    allocation_id: int = Path(..., description="Customer PT package ID"),
    current_user: dict = Depends(require_permission(Permission.PT_PACKAGE_CANCEL)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel an ACTIVE PT package and void its bill, even when it is PAID.

    Payments on a voided bill stay recorded; refunds are handled outside
    the ledger.
    """
    allocation = await PtPackageAllocation.get_allocation(db, allocation_id)
    if allocation.customer_id != customer_id:
        raise AllocationNotFound(allocation_id)

    result = await coordinator.cancel_pt_package(allocation_id)
    return _mutation_response(result)


@router.post("/{allocation_id}/consume", response_model=PtAllocationMutationResponse)
async def consume_pt_session(
    allocation_id: int = Path(..., description="Customer PT package ID"),
    current_user: dict = Depends(require_permission(Permission.PT_SESSION_CONSUME)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """Record one attended session; the package completes at zero remaining."""
    result = await coordinator.consume_pt_session(allocation_id)
    return PtAllocationMutationResponse(
        allocation=PtAllocationResponse.model_validate(result.value),
        **PtAllocationMutationResponse.sync_fields(result.sync)
    )
