"""
Bill Ledger tests.

Bill creation rules, edits, deletion and status recomputation.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select, func

from backend.app.core.exceptions import (
    BillLocked, CustomerNotFound, ImmutableField, InvalidAmount, InvalidBillType, InvalidDiscount
)
from backend.app.domain.billing.bill_ledger import BillLedger
from backend.app.domain.billing.payment_journal import PaymentJournal
from backend.app.domain.entitlements.membership_assignment import MembershipAssignment
from backend.app.models.bill import Bill
from backend.app.models.billing_enums import BillStatus, BillType
from backend.app.models.payment import Payment


async def _custom_bill(db, customer, gross=1000, discount=0):
    bill = await BillLedger.create_bill(db, customer.id, BillType.CUSTOM_AMOUNT, gross, discount)
    await db.commit()
    return bill


@pytest.mark.asyncio
async def test_create_bill_applies_discount(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=1000, discount=10)

    assert bill.net_amount == 900
    assert bill.paid_amount == 0
    assert bill.status == BillStatus.ACTIVE
    assert bill.outstanding_amount == 900


@pytest.mark.asyncio
async def test_fully_discounted_bill_is_paid_on_creation(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=2500, discount=100)

    assert bill.net_amount == 0
    assert bill.status == BillStatus.PAID


@pytest.mark.asyncio
async def test_partial_then_paid_then_overpayment(db_session, customer):
    from backend.app.core.exceptions import OverPayment

    bill = await _custom_bill(db_session, customer, gross=1000, discount=10)
    assert bill.status == BillStatus.ACTIVE

    _, bill = await PaymentJournal.add_payment(db_session, bill.id, 500)
    assert bill.paid_amount == 500
    assert bill.status == BillStatus.PARTIAL

    _, bill = await PaymentJournal.add_payment(db_session, bill.id, 400)
    assert bill.paid_amount == 900
    assert bill.status == BillStatus.PAID
    await db_session.commit()

    with pytest.raises(OverPayment):
        await PaymentJournal.add_payment(db_session, bill.id, 1)


@pytest.mark.asyncio
async def test_discount_must_be_within_range(db_session, customer):
    with pytest.raises(InvalidDiscount):
        await BillLedger.create_bill(db_session, customer.id, BillType.CUSTOM_AMOUNT, 1000, 101)
    with pytest.raises(InvalidDiscount):
        await BillLedger.create_bill(db_session, customer.id, BillType.CUSTOM_AMOUNT, 1000, -1)
    with pytest.raises(InvalidDiscount):
        await BillLedger.create_bill(db_session, customer.id, BillType.CUSTOM_AMOUNT, 1000, "ten")


@pytest.mark.asyncio
async def test_discount_finer_than_a_hundredth_is_rejected(db_session, customer):
    with pytest.raises(InvalidDiscount):
        await BillLedger.create_bill(db_session, customer.id, BillType.CUSTOM_AMOUNT, 100000, "33.335")

    # Trailing zeros are not extra precision
    bill = await _custom_bill(db_session, customer, gross=100000, discount="33.330")
    assert bill.discount_percentage == Decimal("33.33")


@pytest.mark.asyncio
async def test_net_amount_survives_reload(db_session, session_factory, customer):
    bill = await _custom_bill(db_session, customer, gross=99999, discount="12.35")
    bill_id, net_amount = bill.id, bill.net_amount

    async with session_factory() as check:
        reloaded = await check.get(Bill, bill_id)
        assert reloaded.net_amount == net_amount
        assert reloaded.status == BillStatus.ACTIVE


@pytest.mark.asyncio
async def test_negative_gross_is_rejected(db_session, customer):
    with pytest.raises(InvalidAmount):
        await BillLedger.create_bill(db_session, customer.id, BillType.CUSTOM_AMOUNT, -100)


@pytest.mark.asyncio
async def test_unknown_customer_is_rejected(db_session):
    with pytest.raises(CustomerNotFound):
        await BillLedger.create_bill(db_session, 999, BillType.CUSTOM_AMOUNT, 1000)


@pytest.mark.asyncio
async def test_membership_bill_requires_active_membership(db_session, customer, plans):
    with pytest.raises(InvalidBillType):
        await BillLedger.create_bill(db_session, customer.id, BillType.MEMBERSHIP_SUBSCRIPTION, 150000)

    monthly, _ = plans
    membership, _ = await MembershipAssignment.assign(db_session, customer.id, monthly.id)
    bill = await BillLedger.create_bill(db_session, customer.id, BillType.MEMBERSHIP_SUBSCRIPTION, 150000)
    await db_session.commit()

    assert bill.membership_id == membership.id


@pytest.mark.asyncio
async def test_pt_package_bill_only_through_assignment(db_session, customer):
    with pytest.raises(InvalidBillType):
        await BillLedger.create_bill(db_session, customer.id, BillType.PT_PACKAGE, 500000)


@pytest.mark.asyncio
async def test_reactivation_fee_has_no_preconditions(db_session, customer):
    bill = await BillLedger.create_bill(db_session, customer.id, BillType.REACTIVATION_FEE, 50000)
    await db_session.commit()
    assert bill.status == BillStatus.ACTIVE


@pytest.mark.asyncio
async def test_update_recomputes_net_and_status(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=1000)
    _, bill = await PaymentJournal.add_payment(db_session, bill.id, 500)
    assert bill.status == BillStatus.PARTIAL

    await BillLedger.update_bill(db_session, bill, {"gross_amount": 1000, "discount_percentage": Decimal("50")})
    await db_session.commit()

    assert bill.net_amount == 500
    assert bill.status == BillStatus.PAID


@pytest.mark.asyncio
async def test_update_cannot_drop_net_below_paid(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=1000)
    _, bill = await PaymentJournal.add_payment(db_session, bill.id, 600)

    with pytest.raises(InvalidAmount):
        await BillLedger.update_bill(db_session, bill, {"gross_amount": 500})


@pytest.mark.asyncio
async def test_bill_type_is_immutable(db_session, customer):
    bill = await _custom_bill(db_session, customer)

    with pytest.raises(ImmutableField):
        await BillLedger.update_bill(db_session, bill, {"bill_type": BillType.REACTIVATION_FEE})

    # Re-sending the current type is not a change
    await BillLedger.update_bill(db_session, bill, {"bill_type": BillType.CUSTOM_AMOUNT, "notes": "Locker"})
    assert bill.bill_type == BillType.CUSTOM_AMOUNT
    assert bill.notes == "Locker"


@pytest.mark.asyncio
async def test_null_fields_in_patch_are_ignored(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=1000, discount=10)

    await BillLedger.update_bill(
        db_session, bill,
        {"bill_type": None, "gross_amount": None, "discount_percentage": None, "bill_date": None, "notes": None}
    )
    await db_session.commit()

    assert bill.bill_type == BillType.CUSTOM_AMOUNT
    assert bill.net_amount == 900
    assert bill.notes is None


@pytest.mark.asyncio
async def test_paid_bill_is_locked_for_edits(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=1000)
    _, bill = await PaymentJournal.add_payment(db_session, bill.id, 1000)
    await db_session.commit()

    with pytest.raises(BillLocked):
        await BillLedger.update_bill(db_session, bill, {"gross_amount": 2000})


@pytest.mark.asyncio
async def test_voided_bill_is_locked_for_edits(db_session, customer):
    bill = await _custom_bill(db_session, customer)
    await BillLedger.void_bill(db_session, bill)
    await db_session.commit()

    assert bill.status == BillStatus.VOIDED
    with pytest.raises(BillLocked):
        await BillLedger.update_bill(db_session, bill, {"notes": "too late"})


@pytest.mark.asyncio
async def test_deleting_paid_bill_is_rejected(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=1000)
    _, bill = await PaymentJournal.add_payment(db_session, bill.id, 1000)
    await db_session.commit()

    with pytest.raises(BillLocked):
        await BillLedger.delete_bill(db_session, bill)


@pytest.mark.asyncio
async def test_deleting_open_bill_removes_its_payments(db_session, customer):
    bill = await _custom_bill(db_session, customer, gross=1000)
    await PaymentJournal.add_payment(db_session, bill.id, 300)
    await PaymentJournal.add_payment(db_session, bill.id, 200)
    await db_session.commit()
    bill_id = bill.id

    await BillLedger.delete_bill(db_session, bill)
    await db_session.commit()

    assert await db_session.get(Bill, bill_id) is None
    remaining = await db_session.execute(
        select(func.count(Payment.id)).where(Payment.bill_id == bill_id)
    )
    assert remaining.scalar() == 0
