"""
Customer database model.

Identity anchor for the ledger. Balance is never stored here; it is
recomputed from the customer's outstanding bills.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Customer(Base):
    """
    Customer model.

    Owns bills, memberships and PT package allocations.
    Registration and profile editing live outside the ledger.
    """
    __tablename__ = "customers"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.full_name}')>"
