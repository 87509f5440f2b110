"""
Bill Ledger (Domain Logic).

Owns bill records and the bill state machine: creation, edits, deletion,
voiding and recomputation of the paid sum. Never commits; the caller's
atomic unit does.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, update, func

from backend.app.core.clock import business_today, utc_now
from backend.app.core.exceptions import (
    BillLocked, BillNotFound, CustomerNotFound, ImmutableField,
    InvalidAmount, InvalidBillType, InvalidDiscount
)
from backend.app.domain.billing.bill_status import is_locked
from backend.app.domain.billing.money import Money
from backend.app.domain.entitlements.membership_assignment import MembershipAssignment
from backend.app.models.bill import Bill
from backend.app.models.billing_enums import BillStatus, BillType
from backend.app.models.customer import Customer
from backend.app.models.payment import Payment
from backend.app.models.pt_package import CustomerPtPackage

EDITABLE_FIELDS = ("gross_amount", "discount_percentage", "bill_date", "notes")
DISCOUNT_STEP = Decimal("0.01")


def validate_discount(discount_percentage: Union[int, str, Decimal]) -> Decimal:
    """Parse a discount percentage; it must lie in [0, 100] with at most two decimal places."""
    if isinstance(discount_percentage, float):
        discount_percentage = str(discount_percentage)
    try:
        pct = Decimal(str(discount_percentage))
    except InvalidOperation:
        raise InvalidDiscount(discount_percentage)
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise InvalidDiscount(discount_percentage)
    # Stored as NUMERIC(5, 2); a finer value would change the net amount on reload
    if pct != pct.quantize(DISCOUNT_STEP):
        raise InvalidDiscount(discount_percentage)
    return pct.quantize(DISCOUNT_STEP)


class BillLedger:

    @staticmethod
    async def get_bill(db: AsyncSession, bill_id: int) -> Bill:
        bill = await db.get(Bill, bill_id)
        if not bill:
            raise BillNotFound(bill_id)
        return bill

    @staticmethod
    async def list_customer_bills(db: AsyncSession, customer_id: int) -> List[Bill]:
        result = await db.execute(
            select(Bill)
            .where(Bill.customer_id == customer_id)
            .order_by(Bill.bill_date.desc(), Bill.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_bill(
        db: AsyncSession,
        customer_id: int,
        bill_type: BillType,
        gross_amount: int,
        discount_percentage: Union[int, str, Decimal] = 0,
        bill_date: Optional[date] = None,
        membership_id: Optional[int] = None,
        notes: Optional[str] = None,
        via_pt_assignment: bool = False
    ) -> Bill:
        """
        Create a bill with nothing paid.

        Flow:
        1. Validate customer, amount and discount
        2. Check type-specific preconditions
        3. Insert the bill (status derives to ACTIVE, or PAID when net is zero)

        Raises:
            CustomerNotFound: Unknown customer
            InvalidAmount: Negative gross amount
            InvalidDiscount: Discount outside [0, 100]
            InvalidBillType: Membership bill without an active membership,
                or PT package bill outside PT package assignment
        """
        if not await db.get(Customer, customer_id):
            raise CustomerNotFound(customer_id)

        gross = Money(gross_amount)
        pct = validate_discount(discount_percentage)

        if bill_type == BillType.MEMBERSHIP_SUBSCRIPTION:
            current = await MembershipAssignment.current_membership(db, customer_id)
            if not current:
                raise InvalidBillType(bill_type.value, "customer has no active membership")
            membership_id = membership_id or current.id
        elif bill_type == BillType.PT_PACKAGE and not via_pt_assignment:
            raise InvalidBillType(bill_type.value, "PT package bills are created by assigning a PT package")

        bill = Bill(
            customer_id=customer_id,
            bill_type=bill_type,
            bill_date=bill_date or business_today(),
            gross_amount=gross.minor,
            discount_percentage=pct,
            paid_amount=0,
            membership_id=membership_id,
            notes=notes
        )
        db.add(bill)
        await db.flush()

        return bill

    @staticmethod
    async def update_bill(db: AsyncSession, bill: Bill, patch: Dict[str, Any]) -> Bill:
        """
        Apply an edit to an open bill; net amount and status follow.

        Raises:
            BillLocked: Bill is PAID or VOIDED
            ImmutableField: Patch touches bill_type or any non-editable field
            InvalidAmount: Negative gross, or net would fall below the paid sum
            InvalidDiscount: Discount outside [0, 100]
        """
        if is_locked(bill.status):
            raise BillLocked(bill.id, bill.status.value)

        # null means "not sent"; only notes can be cleared
        patch = {field: value for field, value in patch.items() if value is not None or field == "notes"}

        for field, value in patch.items():
            if field == "bill_type" and value in (bill.bill_type, bill.bill_type.value):
                continue
            if field not in EDITABLE_FIELDS:
                raise ImmutableField(field)

        gross_amount = patch.get("gross_amount", bill.gross_amount)
        discount = patch.get("discount_percentage", bill.discount_percentage)
        gross = Money(gross_amount)
        pct = validate_discount(discount)

        if gross.apply_discount(pct).minor < bill.paid_amount:
            raise InvalidAmount("Net amount cannot be lower than the amount already paid", gross_amount)

        bill.gross_amount = gross.minor
        bill.discount_percentage = pct
        if patch.get("bill_date") is not None:
            bill.bill_date = patch["bill_date"]
        if "notes" in patch:
            bill.notes = patch["notes"]
        bill.updated_at = utc_now()

        await db.flush()
        return bill

    @staticmethod
    async def delete_bill(db: AsyncSession, bill: Bill) -> None:
        """
        Delete a bill together with its payments.

        Raises:
            BillLocked: Bill is PAID
        """
        if bill.status == BillStatus.PAID:
            raise BillLocked(bill.id, bill.status.value)

        await db.execute(delete(Payment).where(Payment.bill_id == bill.id))
        await db.execute(
            update(CustomerPtPackage)
            .where(CustomerPtPackage.bill_id == bill.id)
            .values(bill_id=None)
        )
        await db.delete(bill)
        await db.flush()

    @staticmethod
    async def void_bill(db: AsyncSession, bill: Bill) -> Bill:
        """
        Void a bill as part of a controlled cascade.

        Unlike edits and deletes this is allowed on PAID bills. Voiding is terminal.
        """
        if bill.voided_at is None:
            bill.voided_at = utc_now()
            bill.updated_at = bill.voided_at
            await db.flush()
        return bill

    @staticmethod
    async def sum_payments(db: AsyncSession, bill_id: int) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.bill_id == bill_id)
        )
        return int(result.scalar())

    @staticmethod
    async def recompute_status(db: AsyncSession, bill: Bill) -> BillStatus:
        """
        Rewrite the paid sum from the bill's payments and return the derived status.

        paid_amount always equals the SUM over the remaining payments.
        """
        await db.flush()
        bill.paid_amount = await BillLedger.sum_payments(db, bill.id)
        await db.flush()
        return bill.status
