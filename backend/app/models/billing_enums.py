"""
Billing enumerations.
"""

import enum


class BillType(str, enum.Enum):
    """Bill type enumeration. Fixed once the bill is created."""
    MEMBERSHIP_SUBSCRIPTION = "MEMBERSHIP_SUBSCRIPTION"  # Requires an active membership
    CUSTOM_AMOUNT = "CUSTOM_AMOUNT"
    REACTIVATION_FEE = "REACTIVATION_FEE"
    PT_PACKAGE = "PT_PACKAGE"  # Created by PT package assignment


class BillStatus(str, enum.Enum):
    """Bill status enumeration. Derived, never stored."""
    ACTIVE = "ACTIVE"  # Nothing paid yet
    PARTIAL = "PARTIAL"  # Some, not all, of the net amount paid
    PAID = "PAID"  # Fully paid (or net amount is zero)
    VOIDED = "VOIDED"  # Voided by a cascade, terminal


class PaymentMethod(str, enum.Enum):
    """Payment method enumeration."""
    CASH = "cash"
    CARD = "card"
    GCASH = "gcash"
