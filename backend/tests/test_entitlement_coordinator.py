"""
Entitlement Coordinator tests.

Each mutation commits with its audit entry, returns a freshly recomputed
customer view and notifies the front desk.
"""

import pytest
from sqlalchemy import select

from backend.app.core.exceptions import InvalidBillType, OverPayment
from backend.app.domain.entitlements.coordinator import EntitlementCoordinator
from backend.app.models.audit_log import AuditLog
from backend.app.models.billing_enums import BillStatus, BillType, PaymentMethod
from backend.app.models.enums import MembershipStatus, PtPackageStatus
from backend.app.services.audit import AuditAction


async def _audit_actions(session_factory, customer_id):
    async with session_factory() as check:
        result = await check.execute(
            select(AuditLog.action).where(AuditLog.customer_id == customer_id).order_by(AuditLog.id)
        )
        return [row[0] for row in result.all()]


@pytest.mark.asyncio
async def test_create_bill_returns_fresh_view(coordinator, session_factory, notifier, customer):
    result = await coordinator.create_bill(customer.id, BillType.CUSTOM_AMOUNT, 1000, 10)

    assert result.value.net_amount == 900
    assert result.sync.fresh is True
    assert result.sync.detail["balance"] == 900
    assert await _audit_actions(session_factory, customer.id) == [AuditAction.BILL_CREATED]

    latest = notifier.recent()[0]
    assert latest["type"] == "SUCCESS"
    assert latest["message"] == "Bill created successfully"


@pytest.mark.asyncio
async def test_failed_mutation_notifies_and_commits_nothing(coordinator, session_factory, notifier, customer):
    customer_id = customer.id

    with pytest.raises(InvalidBillType):
        await coordinator.create_bill(customer_id, BillType.MEMBERSHIP_SUBSCRIPTION, 150000)

    assert notifier.recent()[0]["type"] == "ERROR"
    assert await _audit_actions(session_factory, customer_id) == []


@pytest.mark.asyncio
async def test_payments_flow_through_balance(coordinator, customer):
    bill = (await coordinator.create_bill(customer.id, BillType.CUSTOM_AMOUNT, 1000)).value

    result = await coordinator.add_payment(bill.id, 600, PaymentMethod.CARD, "VISA-1234")
    payment, bill = result.value
    assert bill.status == BillStatus.PARTIAL
    assert result.sync.detail["balance"] == 400
    payment_id, bill_id = payment.id, bill.id

    with pytest.raises(OverPayment):
        await coordinator.add_payment(bill_id, 401)

    result = await coordinator.delete_payment(payment_id)
    _, bill = result.value
    assert bill.status == BillStatus.ACTIVE
    assert result.sync.detail["balance"] == 1000


@pytest.mark.asyncio
async def test_update_and_delete_bill(coordinator, session_factory, customer):
    bill = (await coordinator.create_bill(customer.id, BillType.CUSTOM_AMOUNT, 1000)).value

    result = await coordinator.update_bill(bill.id, {"discount_percentage": 25})
    assert result.value.net_amount == 750
    assert result.sync.detail["balance"] == 750

    result = await coordinator.delete_bill(bill.id)
    assert result.value is None
    assert result.sync.detail["balance"] == 0

    assert await _audit_actions(session_factory, customer.id) == [
        AuditAction.BILL_CREATED, AuditAction.BILL_UPDATED, AuditAction.BILL_DELETED
    ]


@pytest.mark.asyncio
async def test_assign_membership_bills_plan_in_same_unit(coordinator, session_factory, customer, plans):
    monthly, annual = plans

    result = await coordinator.assign_membership(customer.id, monthly.id)
    membership, superseded, bill = result.value
    assert superseded is None
    assert bill.bill_type == BillType.MEMBERSHIP_SUBSCRIPTION
    assert bill.membership_id == membership.id
    assert bill.net_amount == 150000
    assert result.sync.detail["membership_status"] == MembershipStatus.ACTIVE.value
    assert result.sync.detail["membership"]["plan_name"] == "Monthly Basic"

    result = await coordinator.assign_membership(customer.id, annual.id, create_bill=False)
    membership, superseded, bill = result.value
    assert bill is None
    assert superseded.status == MembershipStatus.EXPIRED
    assert result.sync.detail["membership"]["plan_name"] == "Annual Premium"
    assert result.sync.detail["balance"] == 150000

    assert await _audit_actions(session_factory, customer.id) == [
        AuditAction.MEMBERSHIP_ASSIGNED,
        AuditAction.BILL_CREATED,
        AuditAction.MEMBERSHIP_SUPERSEDED,
        AuditAction.MEMBERSHIP_ASSIGNED,
    ]


@pytest.mark.asyncio
async def test_customer_detail_aggregates_entitlements(coordinator, db_session, customer, plans, pt_package):
    monthly, _ = plans
    await coordinator.assign_membership(customer.id, monthly.id)
    allocation, _ = (await coordinator.assign_pt_package(customer.id, pt_package.id, coach_id=3)).value
    await coordinator.consume_pt_session(allocation.id)

    detail = await EntitlementCoordinator.customer_detail(db_session, customer.id)

    assert detail.full_name == "Maria Santos"
    assert detail.balance == 150000 + 500000
    assert detail.membership_status == MembershipStatus.ACTIVE
    assert detail.active_pt_packages == 1
    assert detail.pt_sessions_remaining == 9
    assert detail.pt_packages[0].package_name == "10 Sessions"
    assert detail.pt_packages[0].status == PtPackageStatus.ACTIVE


@pytest.mark.asyncio
async def test_customer_without_entitlements(db_session, customer):
    detail = await EntitlementCoordinator.customer_detail(db_session, customer.id)

    assert detail.balance == 0
    assert detail.membership_status == MembershipStatus.NONE
    assert detail.membership is None
    assert detail.pt_packages == []
