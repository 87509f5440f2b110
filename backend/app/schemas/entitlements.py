"""
Membership and PT Package Schemas.
"""

from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import Optional, List
from backend.app.models.enums import MembershipStatus, PlanInterval, PtPackageStatus
from backend.app.schemas.billing import BillResponse
from backend.app.schemas.customer import SyncedResponse


class MembershipAssign(BaseModel):
    """Schema for assigning (or swapping) a customer's membership plan."""
    membership_plan_id: int
    membership_start_date: Optional[date] = None
    create_bill: bool = True
    discount_percentage: Decimal = Field(default=Decimal("0"))


class MembershipResponse(BaseModel):
    """Schema for displaying a membership. `status` is the stored status."""
    id: int
    customer_id: int
    membership_plan_id: int
    membership_start_date: date
    membership_end_date: date
    status: MembershipStatus

    class Config:
        from_attributes = True


class CurrentMembershipResponse(BaseModel):
    customer_id: int
    status: MembershipStatus
    membership: Optional[MembershipResponse]


class MembershipMutationResponse(SyncedResponse):
    membership: MembershipResponse
    superseded: Optional[MembershipResponse] = None
    bill: Optional[BillResponse] = None


class PtPackageAssign(BaseModel):
    """Schema for assigning a PT package to a customer."""
    pt_package_id: int
    coach_id: Optional[int] = None
    start_date: Optional[date] = None
    discount_percentage: Decimal = Field(default=Decimal("0"))


class PtAllocationResponse(BaseModel):
    """Schema for displaying a customer PT package."""
    id: int
    customer_id: int
    pt_package_id: int
    coach_id: Optional[int]
    bill_id: Optional[int]
    start_date: date
    sessions_total: int
    sessions_remaining: int
    status: PtPackageStatus

    class Config:
        from_attributes = True


class PtAllocationMutationResponse(SyncedResponse):
    allocation: PtAllocationResponse
    bill: Optional[BillResponse] = None


class MembershipPlanStatsResponse(BaseModel):
    id: int
    plan_name: str
    price: int
    plan_period: int
    plan_interval: PlanInterval
    features: List[str]
    is_active: bool
    active_members_count: int
    monthly_revenue: int


class MembershipPlanCatalogResponse(BaseModel):
    plans: List[MembershipPlanStatsResponse]
    total_plans: int
    total_active_members: int
    total_monthly_revenue: int
    most_popular_plan_id: Optional[int]
