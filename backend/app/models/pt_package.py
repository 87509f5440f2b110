"""
PT Package database models.

`PtPackage` is the catalog entry; `CustomerPtPackage` is one customer's
purchase of it (the allocation) with its session counters.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import PtPackageStatus


class PtPackage(Base):
    """PT package catalog entry."""
    __tablename__ = "pt_packages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    package_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    number_of_sessions = Column(Integer, nullable=False)
    duration_per_session = Column(Integer, nullable=False, default=60)  # minutes

    # Financials (minor units)
    price = Column(Integer, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_pt_packages_price_non_negative"),
        CheckConstraint("number_of_sessions > 0", name="ck_pt_packages_sessions_positive"),
    )

    def __repr__(self):
        return f"<PtPackage(id={self.id}, name='{self.package_name}', sessions={self.number_of_sessions})>"


class CustomerPtPackage(Base):
    """
    Customer PT package allocation.

    `sessions_total` is copied from the catalog at assignment and never changes.
    Created together with its PT_PACKAGE bill; cancelled together with voiding it.
    """
    __tablename__ = "customer_pt_packages"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)
    pt_package_id = Column(Integer, ForeignKey('pt_packages.id'), nullable=False, index=True)
    coach_id = Column(Integer, nullable=True, index=True)

    # Linked bill (nulled if an unpaid bill is deleted directly)
    bill_id = Column(Integer, ForeignKey('bills.id', ondelete="SET NULL"), nullable=True, index=True)

    start_date = Column(Date, nullable=False)

    # Session counters
    sessions_total = Column(Integer, nullable=False)
    sessions_remaining = Column(Integer, nullable=False)

    status = Column(Enum(PtPackageStatus), default=PtPackageStatus.ACTIVE, nullable=False, index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "sessions_remaining >= 0 AND sessions_remaining <= sessions_total",
            name="ck_customer_pt_packages_sessions_in_range"
        ),
    )

    def __repr__(self):
        return (
            f"<CustomerPtPackage(id={self.id}, customer={self.customer_id}, "
            f"remaining={self.sessions_remaining}/{self.sessions_total}, status='{self.status.value}')>"
        )
