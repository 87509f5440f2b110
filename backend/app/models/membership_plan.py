"""
Membership Plan database model.

Catalog entry referenced by memberships and membership bills.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum, JSON, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import PlanInterval


class MembershipPlan(Base):
    """
    Membership Plan model.

    A membership lasts `plan_period` x `plan_interval` from its start date.
    Active member counts and monthly revenue are computed at read time.
    """
    __tablename__ = "membership_plans"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    plan_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    # Financials (minor units)
    price = Column(Integer, nullable=False)

    # Duration
    plan_period = Column(Integer, nullable=False)
    plan_interval = Column(Enum(PlanInterval), nullable=False, default=PlanInterval.MONTHS)

    features = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_membership_plans_price_non_negative"),
        CheckConstraint("plan_period > 0", name="ck_membership_plans_period_positive"),
    )

    def __repr__(self):
        return f"<MembershipPlan(id={self.id}, name='{self.plan_name}', price={self.price})>"
