"""
Bill API Endpoints.

Bill Ledger surface: list, create, edit and delete bills. Mutations go
through the Entitlement Coordinator; reads of the per-customer bill list go
through the Consistency Synchronizer.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.models.customer import Customer
from backend.app.schemas.billing import (
    BillCreate, BillUpdate, BillResponse, BillListResponse, BillMutationResponse
)
from backend.app.core.dependencies import get_current_user, get_coordinator, get_synchronizer
from backend.app.core.guards import require_permission, Permission
from backend.app.core.exceptions import CustomerNotFound
from backend.app.domain.billing.bill_ledger import BillLedger
from backend.app.domain.entitlements.coordinator import EntitlementCoordinator
from backend.app.services.consistency import ConsistencySynchronizer

customer_router = APIRouter(prefix="/customers", tags=["Bills"])
router = APIRouter(prefix="/bills", tags=["Bills"])


@customer_router.get("/{customer_id}/bills", response_model=BillListResponse)
async def list_customer_bills(
    customer_id: int = Path(..., description="Customer ID"),
    current_user: dict = Depends(get_current_user),
    synchronizer: ConsistencySynchronizer = Depends(get_synchronizer),
    db: AsyncSession = Depends(get_db)
):
    """All bills for a customer, newest first, with the derived balance."""
    async def load():
        if not await db.get(Customer, customer_id):
            raise CustomerNotFound(customer_id)
        bills = await BillLedger.list_customer_bills(db, customer_id)
        return BillListResponse(
            customer_id=customer_id,
            bills=[BillResponse.model_validate(bill) for bill in bills],
            balance=await EntitlementCoordinator.customer_balance(db, customer_id)
        )

    return await synchronizer.read(synchronizer.keys.customer_bills(customer_id), load)


@customer_router.post(
    "/{customer_id}/bills",
    response_model=BillMutationResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_bill(
    payload: BillCreate,
    customer_id: int = Path(..., description="Customer ID"),
    current_user: dict = Depends(require_permission(Permission.BILL_CREATE)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """
    Create a bill.

    MEMBERSHIP_SUBSCRIPTION bills need a current membership. PT_PACKAGE
    bills are only created by assigning a PT package.
    """
    result = await coordinator.create_bill(
        customer_id,
        payload.bill_type,
        payload.gross_amount,
        payload.discount_percentage,
        payload.bill_date,
        payload.notes
    )
    return BillMutationResponse(
        bill=BillResponse.model_validate(result.value),
        **BillMutationResponse.sync_fields(result.sync)
    )


@router.get("/{bill_id}", response_model=BillResponse)
async def get_bill(
    bill_id: int = Path(..., description="Bill ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await BillLedger.get_bill(db, bill_id)


@router.patch("/{bill_id}", response_model=BillMutationResponse)
async def update_bill(
    payload: BillUpdate,
    bill_id: int = Path(..., description="Bill ID"),
    current_user: dict = Depends(require_permission(Permission.BILL_UPDATE)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """Edit an ACTIVE or PARTIAL bill. The bill type can never change."""
    result = await coordinator.update_bill(bill_id, payload.model_dump(exclude_unset=True))
    return BillMutationResponse(
        bill=BillResponse.model_validate(result.value),
        **BillMutationResponse.sync_fields(result.sync)
    )


@router.delete("/{bill_id}", response_model=BillMutationResponse)
async def delete_bill(
    bill_id: int = Path(..., description="Bill ID"),
    current_user: dict = Depends(require_permission(Permission.BILL_DELETE)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """Delete a bill that is not PAID, together with its payments."""
    result = await coordinator.delete_bill(bill_id)
    return BillMutationResponse(**BillMutationResponse.sync_fields(result.sync))
