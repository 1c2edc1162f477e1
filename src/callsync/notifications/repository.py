"""
Repository for audit notification database operations.
"""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callsync.notifications.models import Notification, NotificationType


class NotificationRepository:
    """Repository for audit notifications."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(
        self,
        *,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Persist a new unread notification."""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
            read=False,
        )
        self._session.add(notification)
        await self._session.flush()
        await self._session.refresh(notification)
        return notification

    async def list_for_user(
        self,
        user_id: UUID,
        *,
        unread_only: bool = False,
        limit: int = 100,
    ) -> Sequence[Notification]:
        """List a user's notifications, newest first."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification | None:
        """Mark one of the user's notifications read.

        Returns:
            The notification, or None if it does not exist for this user.
        """
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        notification = result.scalar_one_or_none()
        if notification is None:
            return None
        notification.read = True
        await self._session.flush()
        await self._session.refresh(notification)
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification of the user read.

        Returns:
            Number of notifications updated.
        """
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        result = await self._session.execute(stmt)
        return int(result.rowcount or 0)
