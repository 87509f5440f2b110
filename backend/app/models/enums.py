"""
Membership, PT package and staff role enumerations.
"""

import enum


class UserRole(str, enum.Enum):
    """
    Staff role enumeration.

    Roles:
        ADMIN: Passes every permission check
        STAFF: Front desk, limited to granted permissions
        COACH: Personal trainer, limited to granted permissions
    """
    ADMIN = "admin"
    STAFF = "staff"
    COACH = "coach"


class MembershipStatus(str, enum.Enum):
    """Membership status enumeration."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"  # Past its end date, or superseded by a newer plan
    NONE = "NONE"  # Display only: the customer has no membership


class PlanInterval(str, enum.Enum):
    """Unit for a membership plan's period."""
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


class PtPackageStatus(str, enum.Enum):
    """Customer PT package (allocation) status enumeration."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"  # All sessions consumed
    CANCELLED = "CANCELLED"  # Cancelled, linked bill voided
