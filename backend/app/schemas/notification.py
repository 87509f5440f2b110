"""
Notification Schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List, Optional


class NotificationResponse(BaseModel):
    type: str
    message: str
    metadata: Dict[str, Any]
    created_at: datetime
    correlation_id: Optional[str] = None


class NotificationFeedResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int
