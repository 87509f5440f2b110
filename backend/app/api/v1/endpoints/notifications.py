"""
Notification API Endpoints.

Polling feed for the front-desk toasts produced by ledger mutations.
"""

from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import Optional

from backend.app.core.dependencies import get_current_user, get_notifier
from backend.app.services.notification_service import NotificationService
from backend.app.schemas.notification import NotificationFeedResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationFeedResponse)
async def list_notifications(
    since: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier)
):
    """Most recent notifications, newest first."""
    items = notifier.recent(since)[:limit]
    return NotificationFeedResponse(notifications=items, count=len(items))
