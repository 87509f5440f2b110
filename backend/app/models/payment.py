"""
Payment database model.

Immutable record of money applied to one bill.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import PaymentMethod


class Payment(Base):
    """
    Payment model.

    NO updates allowed. A wrong payment is deleted and re-entered,
    and every insert or delete rewrites the bill's paid amount.
    """
    __tablename__ = "payments"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    bill_id = Column(Integer, ForeignKey('bills.id', ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)

    # Financials (minor units)
    amount = Column(Integer, nullable=False)
    payment_date = Column(Date, nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    reference_number = Column(String(100), nullable=True)

    recorded_by_id = Column(Integer, nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )

    def __repr__(self):
        return f"<Payment(id={self.id}, bill={self.bill_id}, amount={self.amount})>"
