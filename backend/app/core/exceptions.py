"""
Custom exceptions and error handlers for consistent error responses.

Provides the ledger error taxonomy (validation, state conflict, not found,
atomicity) with standardized error codes and global exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


# Validation family (bad input shape or range)

class ValidationError(AppException):
    """Raised when input is outside the accepted shape or range."""

    def __init__(self, message: str, error_code: str = "ERR_VALIDATION", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class InvalidAmount(ValidationError):
    """Raised for negative or otherwise unusable money amounts."""

    def __init__(self, message: str = "Amount must not be negative", amount: Any = None):
        super().__init__(message, "ERR_INVALID_AMOUNT", {"amount": str(amount) if amount is not None else None})


class InvalidDiscount(ValidationError):
    """Raised when a discount percentage falls outside [0, 100] or is finer than 0.01."""

    def __init__(self, discount_percentage: Any):
        super().__init__(
            f"Discount percentage must be between 0 and 100 with at most two decimals, got {discount_percentage}",
            "ERR_INVALID_DISCOUNT",
            {"discount_percentage": str(discount_percentage)}
        )


class InvalidBillType(ValidationError):
    """Raised when a bill type's preconditions are not met."""

    def __init__(self, bill_type: Any, reason: str):
        super().__init__(
            f"Cannot create {bill_type} bill: {reason}",
            "ERR_INVALID_BILL_TYPE",
            {"bill_type": str(bill_type)}
        )


class ImmutableField(ValidationError):
    """Raised when an update attempts to change a write-once field."""

    def __init__(self, field: str):
        super().__init__(f"Field '{field}' cannot be changed after creation", "ERR_IMMUTABLE_FIELD", {"field": field})


# State conflict family

class StateConflictError(AppException):
    """Raised when an operation is not allowed in the entity's current state."""

    def __init__(self, message: str, error_code: str = "ERR_STATE_CONFLICT", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class BillLocked(StateConflictError):
    """Raised when a PAID or VOIDED bill is edited, paid or deleted."""

    def __init__(self, bill_id: int, bill_status: Any):
        super().__init__(
            f"Bill {bill_id} is {bill_status} and cannot be modified",
            "ERR_BILL_LOCKED",
            {"bill_id": bill_id, "status": str(bill_status)}
        )


class OverPayment(StateConflictError):
    """Raised when a payment would push paid amount above the net amount."""

    def __init__(self, bill_id: int, amount: int, outstanding: int):
        super().__init__(
            f"Payment of {amount} exceeds outstanding amount {outstanding} on bill {bill_id}",
            "ERR_OVERPAYMENT",
            {"bill_id": bill_id, "amount": amount, "outstanding": outstanding}
        )


class AlreadyCancelled(StateConflictError):
    """Raised when cancelling a PT package that is no longer active."""

    def __init__(self, allocation_id: int, allocation_status: Any):
        super().__init__(
            f"PT package {allocation_id} is already {allocation_status}",
            "ERR_ALREADY_CANCELLED",
            {"allocation_id": allocation_id, "status": str(allocation_status)}
        )


class NoSessionsRemaining(StateConflictError):
    """Raised when consuming a session from an exhausted PT package."""

    def __init__(self, allocation_id: int):
        super().__init__(
            f"PT package {allocation_id} has no sessions remaining",
            "ERR_NO_SESSIONS_REMAINING",
            {"allocation_id": allocation_id}
        )


# Not found family

class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None, error_code: str = "ERR_NOT_FOUND_001"):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class PlanNotFound(ResourceNotFoundError):
    def __init__(self, plan_id: Any):
        super().__init__("Membership plan", plan_id, "ERR_PLAN_NOT_FOUND")


class PtPackageNotFound(ResourceNotFoundError):
    def __init__(self, package_id: Any):
        super().__init__("PT package", package_id, "ERR_PT_PACKAGE_NOT_FOUND")


class CustomerNotFound(ResourceNotFoundError):
    def __init__(self, customer_id: Any):
        super().__init__("Customer", customer_id, "ERR_CUSTOMER_NOT_FOUND")


class BillNotFound(ResourceNotFoundError):
    def __init__(self, bill_id: Any):
        super().__init__("Bill", bill_id, "ERR_BILL_NOT_FOUND")


class PaymentNotFound(ResourceNotFoundError):
    def __init__(self, payment_id: Any):
        super().__init__("Payment", payment_id, "ERR_PAYMENT_NOT_FOUND")


class AllocationNotFound(ResourceNotFoundError):
    def __init__(self, allocation_id: Any):
        super().__init__("Customer PT package", allocation_id, "ERR_ALLOCATION_NOT_FOUND")


# Atomicity

class AtomicityError(AppException):
    """Raised when a unit of work failed part-way and was rolled back."""

    def __init__(self, operation: str, cause: Exception = None):
        super().__init__(
            message=f"{operation} failed and was rolled back",
            error_code="ERR_ATOMICITY",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"operation": operation, "cause": type(cause).__name__ if cause else None}
        )


# Access

class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
