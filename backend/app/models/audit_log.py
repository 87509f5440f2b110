"""
Audit Log Database Model.

Tracks every committed ledger and entitlement mutation.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for ledger mutations.

    Rows are written inside the same transaction as the mutation they
    describe, so a rolled back unit of work leaves no trace here.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which customer and entity were affected
    customer_id = Column(Integer, index=True, nullable=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, entity={self.entity_type}:{self.entity_id})>"
