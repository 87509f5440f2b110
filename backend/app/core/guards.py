"""
Security guards for permission-based access control.

Every ledger mutation is gated by a permission key carried in the JWT
`permissions` claim. Admins pass every check.
"""

from typing import Iterable
from fastapi import Depends
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError


class Permission:
    """Permission keys checked by the ledger endpoints."""
    BILL_CREATE = "bill_create"
    BILL_UPDATE = "bill_update"
    BILL_DELETE = "bill_delete"
    PAYMENT_CREATE = "payment_create"
    PAYMENT_DELETE = "payment_delete"
    MEMBERSHIP_ASSIGN = "membership_assign"
    PT_PACKAGE_ASSIGN = "pt_package_assign"
    PT_PACKAGE_CANCEL = "pt_package_cancel"
    PT_SESSION_CONSUME = "pt_session_consume"
    MEMBERS_LIST_VIEW = "members_list_view"


def has_permission(current_user: dict, permission: str) -> bool:
    if current_user.get("role") == UserRole.ADMIN.value:
        return True
    granted: Iterable[str] = current_user.get("permissions") or ()
    return permission in granted


def require_permission(permission: str):
    """
    Dependency factory for permission checks.

    Usage:
        @router.post("/customers/{customer_id}/bills")
        async def create_bill(
            current_user: dict = Depends(require_permission(Permission.BILL_CREATE))
        ):
            ...

    Raises:
        InsufficientPermissionsError (403) if the permission is not granted
    """
    async def permission_checker(current_user: dict = Depends(get_current_user)) -> dict:
        if not has_permission(current_user, permission):
            raise InsufficientPermissionsError(
                f"Access denied. Required permission: {permission}",
                details={"permission": permission, "role": current_user.get("role")}
            )
        return current_user

    return permission_checker
