"""
Business clock.

The gym runs on local business time (Asia/Manila by default); "today" for
membership expiry is the business date, not the UTC date.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from backend.app.core.config import settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def business_today() -> date:
    return datetime.now(ZoneInfo(settings.business_timezone)).date()
