"""
Customer API Endpoints.

Read side of the ledger: the customer detail aggregate and the customer
list are served through the Consistency Synchronizer.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List

from backend.app.db.session import get_db
from backend.app.models.customer import Customer
from backend.app.schemas.customer import AuditLogResponse, CustomerDetail, CustomerListItem
from backend.app.core.dependencies import get_current_user, get_synchronizer
from backend.app.core.guards import require_permission, Permission
from backend.app.core.exceptions import CustomerNotFound
from backend.app.services.audit import get_customer_audit_trail
from backend.app.services.consistency import ConsistencySynchronizer

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=List[CustomerListItem])
async def list_customers(
    current_user: dict = Depends(require_permission(Permission.MEMBERS_LIST_VIEW)),
    synchronizer: ConsistencySynchronizer = Depends(get_synchronizer),
    db: AsyncSession = Depends(get_db)
):
    """List customers, alphabetically by last name."""
    async def load():
        result = await db.execute(select(Customer).order_by(Customer.last_name, Customer.first_name))
        return [
            CustomerListItem(
                id=customer.id,
                full_name=customer.full_name,
                email=customer.email,
                phone_number=customer.phone_number
            )
            for customer in result.scalars().all()
        ]

    return await synchronizer.read(synchronizer.keys.customer_list(), load)


@router.get("/{customer_id}", response_model=CustomerDetail)
async def get_customer_detail(
    customer_id: int = Path(..., description="Customer ID"),
    current_user: dict = Depends(get_current_user),
    synchronizer: ConsistencySynchronizer = Depends(get_synchronizer)
):
    """
    Customer detail: balance, membership with read-time status, PT summary.

    Returns the cached view when it is FRESH, otherwise recomputes it.
    """
    return await synchronizer.read_customer_detail(customer_id)


@router.get("/{customer_id}/audit-log", response_model=List[AuditLogResponse])
async def get_customer_audit_log(
    customer_id: int = Path(..., description="Customer ID"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Most recent ledger events for a customer."""
    if not await db.get(Customer, customer_id):
        raise CustomerNotFound(customer_id)
    return await get_customer_audit_trail(db, customer_id, limit)
