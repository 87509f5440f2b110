"""
Payment API Endpoints.

Payment Journal surface. Every payment change recomputes the bill it
belongs to before the response is built.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from backend.app.db.session import get_db
from backend.app.schemas.billing import (
    PaymentCreate, PaymentResponse, PaymentMutationResponse, BillResponse
)
from backend.app.core.dependencies import get_current_user, get_coordinator, get_synchronizer
from backend.app.core.guards import require_permission, Permission
from backend.app.domain.billing.bill_ledger import BillLedger
from backend.app.domain.billing.payment_journal import PaymentJournal
from backend.app.domain.entitlements.coordinator import EntitlementCoordinator
from backend.app.services.consistency import ConsistencySynchronizer

bill_router = APIRouter(prefix="/bills", tags=["Payments"])
router = APIRouter(prefix="/payments", tags=["Payments"])


@bill_router.get("/{bill_id}/payments", response_model=List[PaymentResponse])
async def list_bill_payments(
    bill_id: int = Path(..., description="Bill ID"),
    current_user: dict = Depends(get_current_user),
    synchronizer: ConsistencySynchronizer = Depends(get_synchronizer),
    db: AsyncSession = Depends(get_db)
):
    async def load():
        await BillLedger.get_bill(db, bill_id)
        payments = await PaymentJournal.list_bill_payments(db, bill_id)
        return [PaymentResponse.model_validate(payment) for payment in payments]

    return await synchronizer.read(synchronizer.keys.bill_payments(bill_id), load)


@bill_router.post(
    "/{bill_id}/payments",
    response_model=PaymentMutationResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_payment(
    payload: PaymentCreate,
    bill_id: int = Path(..., description="Bill ID"),
    current_user: dict = Depends(require_permission(Permission.PAYMENT_CREATE)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """
    Record a payment against an ACTIVE or PARTIAL bill.

    The amount must be positive and may not exceed what is still owed.
    """
    result = await coordinator.add_payment(
        bill_id,
        payload.amount,
        payload.method,
        payload.reference_number,
        payload.payment_date
    )
    payment, bill = result.value
    return PaymentMutationResponse(
        payment=PaymentResponse.model_validate(payment),
        bill=BillResponse.model_validate(bill),
        **PaymentMutationResponse.sync_fields(result.sync)
    )


@router.delete("/{payment_id}", response_model=PaymentMutationResponse)
async def delete_payment(
    payment_id: int = Path(..., description="Payment ID"),
    current_user: dict = Depends(require_permission(Permission.PAYMENT_DELETE)),
    coordinator: EntitlementCoordinator = Depends(get_coordinator)
):
    """Remove a payment; the bill's paid amount and status are recomputed."""
    result = await coordinator.delete_payment(payment_id)
    payment, bill = result.value
    return PaymentMutationResponse(
        payment=PaymentResponse.model_validate(payment),
        bill=BillResponse.model_validate(bill),
        **PaymentMutationResponse.sync_fields(result.sync)
    )
