"""
Bill database model.

A single billable obligation owned by a customer.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Date, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import BillType, BillStatus
from backend.app.domain.billing.bill_status import derive_bill_status
from backend.app.domain.billing.money import Money


class Bill(Base):
    """
    Bill model.

    Stored facts: gross amount, discount, the paid sum and the voided timestamp.
    `net_amount` and `status` are derived from them on every read.
    `paid_amount` is always rewritten from the SUM of the bill's payments.
    """
    __tablename__ = "bills"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)

    bill_date = Column(Date, nullable=False)
    bill_type = Column(Enum(BillType), nullable=False, index=True)

    # Financials (minor units)
    gross_amount = Column(Integer, nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    paid_amount = Column(Integer, nullable=False, default=0)

    # Type-specific reference (membership bills)
    membership_id = Column(Integer, ForeignKey('memberships.id'), nullable=True, index=True)

    notes = Column(String(255), nullable=True)

    # Set only by a cascade (PT package cancellation), terminal
    voided_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("gross_amount >= 0", name="ck_bills_gross_non_negative"),
        CheckConstraint("paid_amount >= 0", name="ck_bills_paid_non_negative"),
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_bills_discount_range"
        ),
    )

    @property
    def net_amount(self) -> int:
        return Money(self.gross_amount).apply_discount(self.discount_percentage or 0).minor

    @property
    def outstanding_amount(self) -> int:
        return max(self.net_amount - (self.paid_amount or 0), 0)

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    @property
    def status(self) -> BillStatus:
        return derive_bill_status(self.net_amount, self.paid_amount or 0, self.is_voided)

    def __repr__(self):
        return f"<Bill(id={self.id}, type='{self.bill_type.value}', net={self.net_amount}, paid={self.paid_amount})>"
