"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    customers, bills, payments, memberships, pt_packages,
    membership_plans, notifications
)

router = APIRouter()

# Customer read side
router.include_router(customers.router)

# Bill Ledger and Payment Journal
router.include_router(bills.customer_router)
router.include_router(bills.router)
router.include_router(payments.bill_router)
router.include_router(payments.router)

# Entitlements
router.include_router(memberships.router)
router.include_router(pt_packages.customer_router)
router.include_router(pt_packages.router)

# Catalog
router.include_router(membership_plans.router)

# Notifications feed
router.include_router(notifications.router)
