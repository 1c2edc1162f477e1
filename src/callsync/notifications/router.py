"""
Audit notifications API router.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from callsync.auth.middleware import CurrentUserDep
from callsync.notifications.repository import NotificationRepository
from callsync.notifications.schemas import MarkAllReadResponse, NotificationResponse
from callsync.shared.database import get_db_session
from callsync.shared.exceptions import NotFoundError

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> NotificationRepository:
    """Dependency for the notification repository."""
    return NotificationRepository(session)


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUserDep,
    repository: Annotated[NotificationRepository, Depends(get_notification_repository)],
    unread: Annotated[bool, Query(description="Only unread notifications")] = False,
) -> list[NotificationResponse]:
    """List the caller's notifications, newest first."""
    notifications = await repository.list_for_user(current_user.id, unread_only=unread)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    current_user: CurrentUserDep,
    repository: Annotated[NotificationRepository, Depends(get_notification_repository)],
) -> MarkAllReadResponse:
    updated = await repository.mark_all_read(current_user.id)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUserDep,
    repository: Annotated[NotificationRepository, Depends(get_notification_repository)],
) -> NotificationResponse:
    """Mark one notification read.

    Raises:
        NotFoundError: If the notification does not belong to the caller.
    """
    notification = await repository.mark_read(current_user.id, notification_id)
    if notification is None:
        raise NotFoundError(
            "Notification not found",
            details={"notification_id": str(notification_id)},
        )
    return NotificationResponse.model_validate(notification)
