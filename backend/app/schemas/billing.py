"""
Billing Schemas.

All money fields are integer centavos.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.billing_enums import BillStatus, BillType, PaymentMethod
from backend.app.schemas.customer import SyncedResponse


class BillCreate(BaseModel):
    """Schema for creating a bill."""
    bill_type: BillType
    gross_amount: int = Field(..., description="Gross amount in centavos")
    discount_percentage: Decimal = Field(default=Decimal("0"))
    bill_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=255)


class BillUpdate(BaseModel):
    """Schema for editing an open bill. bill_type is accepted only to reject changes to it."""
    bill_type: Optional[BillType] = None
    gross_amount: Optional[int] = None
    discount_percentage: Optional[Decimal] = None
    bill_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=255)

    class Config:
        extra = "forbid"


class BillResponse(BaseModel):
    """Schema for displaying a bill."""
    id: int
    customer_id: int
    bill_date: date
    bill_type: BillType
    gross_amount: int
    discount_percentage: float
    net_amount: int
    paid_amount: int
    outstanding_amount: int
    status: BillStatus
    membership_id: Optional[int]
    notes: Optional[str]
    voided_at: Optional[datetime]

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    """Schema for recording a payment."""
    amount: int = Field(..., description="Amount in centavos")
    method: PaymentMethod = PaymentMethod.CASH
    reference_number: Optional[str] = Field(None, max_length=100)
    payment_date: Optional[date] = None


class PaymentResponse(BaseModel):
    """Schema for displaying a payment."""
    id: int
    bill_id: int
    customer_id: int
    amount: int
    payment_date: date
    method: PaymentMethod
    reference_number: Optional[str]

    class Config:
        from_attributes = True


class BillMutationResponse(SyncedResponse):
    bill: Optional[BillResponse] = None


class PaymentMutationResponse(SyncedResponse):
    payment: PaymentResponse
    bill: BillResponse


class BillListResponse(BaseModel):
    customer_id: int
    bills: List[BillResponse]
    balance: int
