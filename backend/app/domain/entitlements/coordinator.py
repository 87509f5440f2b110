"""
Entitlement Coordinator.

Single entry point for every ledger and entitlement mutation. Each call:

1. Runs the domain operation and its audit entry as one atomic unit
2. After commit, has the Consistency Synchronizer refresh the customer view
3. Sends a fire-and-forget notification (success, failure, stale warning)

It also computes the customer-level derived figures (balance, detail view).
Authorization is checked by callers before they get here.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select

from backend.app.core.clock import business_today, utc_now
from backend.app.core.config import settings
from backend.app.core.exceptions import AppException, CustomerNotFound
from backend.app.db.session import run_atomic
from backend.app.domain.billing.bill_ledger import BillLedger
from backend.app.domain.billing.bill_status import is_outstanding
from backend.app.domain.billing.money import Money
from backend.app.domain.billing.payment_journal import PaymentJournal
from backend.app.domain.entitlements.membership_assignment import MembershipAssignment, display_status
from backend.app.domain.entitlements.pt_allocation import PtPackageAllocation
from backend.app.models.billing_enums import BillType, PaymentMethod
from backend.app.models.customer import Customer
from backend.app.models.enums import PtPackageStatus
from backend.app.models.membership_plan import MembershipPlan
from backend.app.models.pt_package import PtPackage
from backend.app.schemas.customer import CustomerDetail, MembershipSummary, PtPackageSummary
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.consistency import CacheKeyNamespace, ConsistencySynchronizer, SyncOutcome
from backend.app.services.notification_service import NotificationService, NotificationType

Discount = Union[int, str, Decimal]

# Work functions return (result, customer_id, bill_id touched or None)
Work = Callable[[AsyncSession], Awaitable[Tuple[Any, int, Optional[int]]]]


@dataclass
class MutationResult:
    value: Any
    customer_id: int
    sync: SyncOutcome


class EntitlementCoordinator:

    def __init__(
        self,
        db: AsyncSession,
        synchronizer: ConsistencySynchronizer,
        notifier: NotificationService,
        actor: Optional[Dict[str, Any]] = None
    ):
        self.db = db
        self.synchronizer = synchronizer
        self.notifier = notifier
        self.actor = actor or {}

    # Derived figures

    @staticmethod
    async def customer_balance(db: AsyncSession, customer_id: int) -> int:
        """Sum of (net - paid) over the customer's ACTIVE and PARTIAL bills."""
        bills = await BillLedger.list_customer_bills(db, customer_id)
        return Money.sum(Money(bill.outstanding_amount) for bill in bills if is_outstanding(bill.status)).minor

    @staticmethod
    async def customer_detail(db: AsyncSession, customer_id: int, today: Optional[date] = None) -> CustomerDetail:
        """Recompute the customer detail aggregate from ledger state."""
        today = today or business_today()

        customer = await db.get(Customer, customer_id)
        if not customer:
            raise CustomerNotFound(customer_id)

        balance = await EntitlementCoordinator.customer_balance(db, customer_id)

        membership = await MembershipAssignment.latest_membership(db, customer_id)
        membership_summary = None
        if membership:
            plan = await db.get(MembershipPlan, membership.membership_plan_id)
            membership_summary = MembershipSummary(
                membership_id=membership.id,
                membership_plan_id=membership.membership_plan_id,
                plan_name=plan.plan_name if plan else None,
                membership_start_date=membership.membership_start_date,
                membership_end_date=membership.membership_end_date,
                status=display_status(membership, today)
            )

        allocations = await PtPackageAllocation.list_customer_allocations(db, customer_id)
        package_names: Dict[int, str] = {}
        if allocations:
            result = await db.execute(
                select(PtPackage.id, PtPackage.package_name)
                .where(PtPackage.id.in_({a.pt_package_id for a in allocations}))
            )
            package_names = dict(result.all())

        active = [a for a in allocations if a.status == PtPackageStatus.ACTIVE]

        return CustomerDetail(
            id=customer.id,
            full_name=customer.full_name,
            balance=balance,
            membership_status=display_status(membership, today),
            membership=membership_summary,
            active_pt_packages=len(active),
            pt_sessions_remaining=sum(a.sessions_remaining for a in active),
            pt_packages=[
                PtPackageSummary(
                    allocation_id=a.id,
                    pt_package_id=a.pt_package_id,
                    package_name=package_names.get(a.pt_package_id),
                    coach_id=a.coach_id,
                    sessions_total=a.sessions_total,
                    sessions_remaining=a.sessions_remaining,
                    status=a.status,
                    bill_id=a.bill_id
                )
                for a in allocations
            ],
            computed_at=utc_now()
        )

    # Mutation plumbing

    async def _execute(self, operation: str, work: Work, success_message: str) -> MutationResult:
        try:
            value, customer_id, bill_id = await run_atomic(self.db, work, operation)
        except AppException as exc:
            self.notifier.notify(NotificationType.ERROR, exc.message, {"operation": operation})
            raise

        sync = await self.synchronizer.after_mutation(customer_id, bill_id=bill_id)

        self.notifier.notify(NotificationType.SUCCESS, success_message, {"customer_id": customer_id})
        if not sync.fresh:
            self.notifier.notify(NotificationType.WARNING, sync.warning, {"customer_id": customer_id})

        return MutationResult(value=value, customer_id=customer_id, sync=sync)

    async def _audit(self, action: str, customer_id: int, entity_type: str, entity_id: int, **metadata) -> None:
        await log_event(
            self.db,
            action=action,
            actor=self.actor,
            customer_id=customer_id,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=metadata or None
        )

    # Bills

    async def create_bill(
        self,
        customer_id: int,
        bill_type: BillType,
        gross_amount: int,
        discount_percentage: Discount = 0,
        bill_date: Optional[date] = None,
        notes: Optional[str] = None
    ) -> MutationResult:
        async def work(db):
            bill = await BillLedger.create_bill(
                db, customer_id, bill_type, gross_amount, discount_percentage, bill_date, notes=notes
            )
            await self._audit(
                AuditAction.BILL_CREATED, customer_id, "bill", bill.id,
                bill_type=bill.bill_type.value, net_amount=bill.net_amount
            )
            return bill, customer_id, bill.id

        return await self._execute("create_bill", work, "Bill created successfully")

    async def update_bill(self, bill_id: int, patch: Dict[str, Any]) -> MutationResult:
        async def work(db):
            bill = await BillLedger.get_bill(db, bill_id)
            await BillLedger.update_bill(db, bill, patch)
            await self._audit(
                AuditAction.BILL_UPDATED, bill.customer_id, "bill", bill.id,
                fields=sorted(patch), net_amount=bill.net_amount
            )
            return bill, bill.customer_id, bill.id

        return await self._execute("update_bill", work, "Bill updated successfully")

    async def delete_bill(self, bill_id: int) -> MutationResult:
        async def work(db):
            bill = await BillLedger.get_bill(db, bill_id)
            customer_id = bill.customer_id
            await BillLedger.delete_bill(db, bill)
            await self._audit(AuditAction.BILL_DELETED, customer_id, "bill", bill_id)
            return None, customer_id, bill_id

        return await self._execute("delete_bill", work, "Bill deleted successfully")

    # Payments

    async def add_payment(
        self,
        bill_id: int,
        amount: int,
        method: PaymentMethod = PaymentMethod.CASH,
        reference_number: Optional[str] = None,
        payment_date: Optional[date] = None
    ) -> MutationResult:
        async def work(db):
            payment, bill = await PaymentJournal.add_payment(
                db, bill_id, amount, method, reference_number, payment_date,
                recorded_by_id=self.actor.get("user_id")
            )
            await self._audit(
                AuditAction.PAYMENT_RECORDED, bill.customer_id, "payment", payment.id,
                bill_id=bill.id, amount=payment.amount, method=payment.method.value
            )
            return (payment, bill), bill.customer_id, bill.id

        return await self._execute("add_payment", work, "Payment recorded successfully")

    async def delete_payment(self, payment_id: int) -> MutationResult:
        async def work(db):
            payment, bill = await PaymentJournal.delete_payment(db, payment_id)
            await self._audit(
                AuditAction.PAYMENT_DELETED, bill.customer_id, "payment", payment_id,
                bill_id=bill.id, amount=payment.amount
            )
            return (payment, bill), bill.customer_id, bill.id

        return await self._execute("delete_payment", work, "Payment deleted successfully")

    # Memberships

    async def assign_membership(
        self,
        customer_id: int,
        membership_plan_id: int,
        start_date: Optional[date] = None,
        create_bill: bool = True,
        discount_percentage: Discount = 0
    ) -> MutationResult:
        """
        Swap the customer onto a plan: supersede, insert, and (by default)
        bill the plan price, all in one unit.
        """
        async def work(db):
            membership, superseded = await MembershipAssignment.assign(
                db, customer_id, membership_plan_id, start_date
            )
            if superseded:
                await self._audit(
                    AuditAction.MEMBERSHIP_SUPERSEDED, customer_id, "membership", superseded.id,
                    replaced_by_plan_id=membership_plan_id
                )
            await self._audit(
                AuditAction.MEMBERSHIP_ASSIGNED, customer_id, "membership", membership.id,
                membership_plan_id=membership_plan_id,
                membership_end_date=membership.membership_end_date.isoformat()
            )

            bill = None
            if create_bill:
                plan = await db.get(MembershipPlan, membership_plan_id)
                bill = await BillLedger.create_bill(
                    db, customer_id, BillType.MEMBERSHIP_SUBSCRIPTION, plan.price,
                    discount_percentage, membership.membership_start_date,
                    membership_id=membership.id, notes=f"Membership: {plan.plan_name}"
                )
                await self._audit(
                    AuditAction.BILL_CREATED, customer_id, "bill", bill.id,
                    bill_type=bill.bill_type.value, net_amount=bill.net_amount
                )
            return (membership, superseded, bill), customer_id, bill.id if bill else None

        return await self._execute("assign_membership", work, "Membership plan updated successfully")

    # PT packages

    async def assign_pt_package(
        self,
        customer_id: int,
        pt_package_id: int,
        coach_id: Optional[int] = None,
        start_date: Optional[date] = None,
        discount_percentage: Discount = 0
    ) -> MutationResult:
        async def work(db):
            allocation, bill = await PtPackageAllocation.assign(
                db, customer_id, pt_package_id, coach_id, start_date, discount_percentage
            )
            await self._audit(
                AuditAction.PT_PACKAGE_ASSIGNED, customer_id, "customer_pt_package", allocation.id,
                pt_package_id=pt_package_id, bill_id=bill.id, sessions_total=allocation.sessions_total
            )
            return (allocation, bill), customer_id, bill.id

        return await self._execute("assign_pt_package", work, "PT Package assigned successfully")

    async def cancel_pt_package(self, allocation_id: int) -> MutationResult:
        async def work(db):
            allocation, bill = await PtPackageAllocation.cancel(db, allocation_id)
            await self._audit(
                AuditAction.PT_PACKAGE_CANCELLED, allocation.customer_id, "customer_pt_package", allocation.id,
                bill_id=allocation.bill_id
            )
            if bill:
                await self._audit(
                    AuditAction.BILL_VOIDED, allocation.customer_id, "bill", bill.id,
                    paid_amount=bill.paid_amount, refund_due=Money(bill.paid_amount).format(settings.currency_code)
                )
            return (allocation, bill), allocation.customer_id, bill.id if bill else None

        return await self._execute("cancel_pt_package", work, "PT Package cancelled successfully")

    async def consume_pt_session(self, allocation_id: int) -> MutationResult:
        async def work(db):
            allocation = await PtPackageAllocation.consume_session(db, allocation_id)
            await self._audit(
                AuditAction.PT_SESSION_CONSUMED, allocation.customer_id, "customer_pt_package", allocation.id,
                sessions_remaining=allocation.sessions_remaining
            )
            return allocation, allocation.customer_id, None

        return await self._execute("consume_pt_session", work, "PT session recorded")


def customer_detail_loader(session_factory: async_sessionmaker) -> Callable[[int], Awaitable[CustomerDetail]]:
    """Detail loader for the synchronizer; each refetch reads through a new session."""
    async def load(customer_id: int) -> CustomerDetail:
        async with session_factory() as db:
            return await EntitlementCoordinator.customer_detail(db, customer_id)
    return load


def build_synchronizer(redis, session_factory: async_sessionmaker) -> ConsistencySynchronizer:
    """Create the per-application synchronizer from settings."""
    return ConsistencySynchronizer(
        redis,
        CacheKeyNamespace(settings.cache_key_prefix),
        customer_detail_loader(session_factory),
        ttl_seconds=settings.cache_ttl_seconds,
        settle_delay_ms=settings.sync_settle_delay_ms,
        refetch_timeout_seconds=settings.sync_refetch_timeout_seconds,
        refetch_attempts=settings.sync_refetch_attempts
    )
