"""
Membership database model.

A customer's subscription to a membership plan.
"""

from sqlalchemy import Column, Integer, ForeignKey, Date, DateTime, Enum, Index, text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import MembershipStatus


class Membership(Base):
    """
    Membership model.

    At most one ACTIVE row per customer, enforced through a partial unique index.
    Assigning a new plan supersedes (EXPIRES) the current row; rows are never deleted.
    Expiry by date is computed at read time and does not rewrite `status`.
    """
    __tablename__ = "memberships"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)
    membership_plan_id = Column(Integer, ForeignKey('membership_plans.id'), nullable=False, index=True)

    membership_start_date = Column(Date, nullable=False)
    membership_end_date = Column(Date, nullable=False)

    status = Column(Enum(MembershipStatus), default=MembershipStatus.ACTIVE, nullable=False, index=True)
    superseded_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_memberships_one_active', 'customer_id', unique=True,
              postgresql_where=text("status = 'ACTIVE'"),
              sqlite_where=text("status = 'ACTIVE'")),
    )

    def __repr__(self):
        return f"<Membership(id={self.id}, customer={self.customer_id}, plan={self.membership_plan_id}, status='{self.status.value}')>"
