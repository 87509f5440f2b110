"""
Customer Detail Schemas.

The customer detail view is the aggregate that must never show a
pre-mutation value right after a write.
"""

from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional, List, Dict, Any
from backend.app.models.enums import MembershipStatus, PtPackageStatus


class MembershipSummary(BaseModel):
    membership_id: int
    membership_plan_id: int
    plan_name: Optional[str]
    membership_start_date: date
    membership_end_date: date
    status: MembershipStatus


class PtPackageSummary(BaseModel):
    allocation_id: int
    pt_package_id: int
    package_name: Optional[str]
    coach_id: Optional[int]
    sessions_total: int
    sessions_remaining: int
    status: PtPackageStatus
    bill_id: Optional[int]


class CustomerDetail(BaseModel):
    """Schema for the customer detail aggregate."""
    id: int
    full_name: str
    balance: int
    membership_status: MembershipStatus
    membership: Optional[MembershipSummary]
    active_pt_packages: int
    pt_sessions_remaining: int
    pt_packages: List[PtPackageSummary]
    computed_at: datetime


class SyncedResponse(BaseModel):
    """
    Base for mutation responses.

    `customer` is the detail view re-read after the commit. When the refresh
    did not finish, `view_may_be_stale` is set and `customer` may be None.
    """
    customer: Optional[CustomerDetail] = None
    view_may_be_stale: bool = False
    sync_warning: Optional[str] = None

    @classmethod
    def sync_fields(cls, outcome) -> Dict[str, Any]:
        return {
            "customer": outcome.detail,
            "view_may_be_stale": not outcome.fresh,
            "sync_warning": outcome.warning,
        }


class CustomerListItem(BaseModel):
    id: int
    full_name: str
    email: Optional[str]
    phone_number: Optional[str]


class AuditLogResponse(BaseModel):
    """Schema for one audit trail entry."""
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    meta_data: Optional[Dict[str, Any]]
    timestamp: datetime

    class Config:
        from_attributes = True
