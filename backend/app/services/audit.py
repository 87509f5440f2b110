"""
Audit logging service for ledger and entitlement mutations.

Entries are flushed into the caller's transaction, never committed here,
so they share the fate of the mutation they record.
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Bill Ledger
    BILL_CREATED = "BILL_CREATED"
    BILL_UPDATED = "BILL_UPDATED"
    BILL_DELETED = "BILL_DELETED"
    BILL_VOIDED = "BILL_VOIDED"

    # Payment Journal
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PAYMENT_DELETED = "PAYMENT_DELETED"

    # Memberships
    MEMBERSHIP_ASSIGNED = "MEMBERSHIP_ASSIGNED"
    MEMBERSHIP_SUPERSEDED = "MEMBERSHIP_SUPERSEDED"

    # PT Packages
    PT_PACKAGE_ASSIGNED = "PT_PACKAGE_ASSIGNED"
    PT_PACKAGE_CANCELLED = "PT_PACKAGE_CANCELLED"
    PT_SESSION_CONSUMED = "PT_SESSION_CONSUMED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[Dict[str, Any]] = None,
    customer_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record a ledger event in the audit log.

    Args:
        db: Database session (transaction managed by caller)
        action: Action being performed (use AuditAction constants)
        actor: Decoded token of the staff member, None for system actions
        customer_id: Customer whose ledger changed
        entity_type: Table-level name of the affected entity ("bill", "payment", ...)
        entity_id: ID of the affected entity
        metadata: Additional context as JSON

    Returns:
        Flushed AuditLog instance
    """
    actor = actor or {}
    audit_log = AuditLog(
        actor_id=actor.get("user_id"),
        actor_username=actor.get("sub"),
        action=action,
        customer_id=customer_id,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_customer_audit_trail(
    db: AsyncSession,
    customer_id: int,
    limit: int = 100
) -> List[AuditLog]:
    """Most recent audit entries for one customer's ledger."""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.customer_id == customer_id)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
        .limit(limit)
    )
    return list(result.scalars().all())
