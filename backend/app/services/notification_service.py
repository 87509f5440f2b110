"""
Notification Service.

Fire-and-forget sink for front-desk toasts. The ledger calls `notify` after
a mutation succeeds or fails and never waits on delivery.
"""

import enum
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from backend.app.core.clock import utc_now
from backend.app.core.observability import get_correlation_id

logger = logging.getLogger(__name__)


class NotificationType(str, enum.Enum):
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class NotificationService:
    """
    In-process notification feed.

    Keeps the most recent messages for the UI to poll and mirrors each one
    to the application log.
    """

    def __init__(self, max_items: int = 200):
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=max_items)

    def notify(
        self,
        kind: NotificationType,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        entry = {
            "type": kind.value,
            "message": message,
            "metadata": metadata or {},
            "created_at": utc_now().isoformat(),
            "correlation_id": get_correlation_id(),
        }
        self._recent.append(entry)

        level = logging.WARNING if kind in (NotificationType.WARNING, NotificationType.ERROR) else logging.INFO
        logger.log(level, message, extra={"notification_type": kind.value, **(metadata or {})})

    def recent(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Newest first."""
        items = list(reversed(self._recent))
        if since is None:
            return items
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        return [item for item in items if datetime.fromisoformat(item["created_at"]) > since]

    def clear(self) -> None:
        self._recent.clear()
