"""
Pydantic schemas for the notifications API.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from callsync.notifications.models import NotificationType


class NotificationResponse(BaseModel):
    """Audit notification as returned to the dashboard."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    read: bool
    created_at: datetime


class MarkAllReadResponse(BaseModel):
    updated: int = Field(..., ge=0, description="Number of notifications marked read")
