"""
Payment Journal (Domain Logic).

Append-only record of payments against a bill. Every insert or delete
rewrites the bill's paid sum through the Bill Ledger.
"""

from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.clock import business_today
from backend.app.core.exceptions import BillLocked, InvalidAmount, OverPayment, PaymentNotFound
from backend.app.domain.billing.bill_ledger import BillLedger
from backend.app.domain.billing.bill_status import is_locked
from backend.app.domain.billing.money import Money
from backend.app.models.bill import Bill
from backend.app.models.billing_enums import PaymentMethod
from backend.app.models.payment import Payment


class PaymentJournal:

    @staticmethod
    async def add_payment(
        db: AsyncSession,
        bill_id: int,
        amount: int,
        method: PaymentMethod = PaymentMethod.CASH,
        reference_number: Optional[str] = None,
        payment_date: Optional[date] = None,
        recorded_by_id: Optional[int] = None
    ) -> Tuple[Payment, Bill]:
        """
        Apply a payment to a bill.

        Flow:
        1. Validate amount (> 0, integer minor units)
        2. Reject if the bill is VOIDED
        3. Reject if amount + paid would exceed the net amount (always the case
           for a PAID bill, which reports OverPayment)
        4. Reject any remaining locked state
        5. Append the payment and recompute the bill

        Returns:
            (payment, bill) with the bill's paid sum already rewritten

        Raises:
            BillNotFound, InvalidAmount, BillLocked, OverPayment
        """
        bill = await BillLedger.get_bill(db, bill_id)

        paid = Money(amount)
        if not paid:
            raise InvalidAmount("Payment amount must be greater than zero", amount)

        if bill.is_voided:
            raise BillLocked(bill.id, bill.status.value)

        already_paid = await BillLedger.sum_payments(db, bill.id)
        outstanding = bill.net_amount - already_paid
        if paid.minor > outstanding:
            raise OverPayment(bill.id, paid.minor, outstanding)

        if is_locked(bill.status):
            raise BillLocked(bill.id, bill.status.value)

        payment = Payment(
            bill_id=bill.id,
            customer_id=bill.customer_id,
            amount=paid.minor,
            method=method,
            reference_number=reference_number,
            payment_date=payment_date or business_today(),
            recorded_by_id=recorded_by_id
        )
        db.add(payment)
        await db.flush()

        await BillLedger.recompute_status(db, bill)
        return payment, bill

    @staticmethod
    async def get_payment(db: AsyncSession, payment_id: int) -> Payment:
        payment = await db.get(Payment, payment_id)
        if not payment:
            raise PaymentNotFound(payment_id)
        return payment

    @staticmethod
    async def delete_payment(db: AsyncSession, payment_id: int) -> Tuple[Payment, Bill]:
        """
        Remove a payment and recompute its bill.

        A PAID bill drops back to PARTIAL or ACTIVE; deleting a payment
        can "unpay" a bill.
        """
        payment = await PaymentJournal.get_payment(db, payment_id)
        bill = await BillLedger.get_bill(db, payment.bill_id)

        await db.delete(payment)
        await db.flush()

        await BillLedger.recompute_status(db, bill)
        return payment, bill

    @staticmethod
    async def list_bill_payments(db: AsyncSession, bill_id: int) -> List[Payment]:
        result = await db.execute(
            select(Payment)
            .where(Payment.bill_id == bill_id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return list(result.scalars().all())
