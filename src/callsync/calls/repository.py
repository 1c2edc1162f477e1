"""
Repository for call record database operations.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callsync.calls.models import CallDirection, CallRecord, CallStatus, ExternalCallId


class CallRecordRepositoryProtocol(Protocol):
    """Protocol for call record store operations."""

    async def create(
        self,
        *,
        external_id: ExternalCallId,
        from_number: str,
        to_number: str,
        direction: CallDirection,
        status: CallStatus = CallStatus.INITIATED,
        owner_id: UUID | None = None,
        created_at: datetime | None = None,
        raw_payload: dict[str, Any] | None = None,
    ) -> CallRecord:
        """Create a new call record."""
        ...

    async def find_by_external_id(
        self,
        external_id: ExternalCallId,
        *,
        for_update: bool = False,
    ) -> CallRecord | None:
        """Find the record matching either external id."""
        ...

    async def update(self, record: CallRecord) -> CallRecord:
        """Persist pending changes to a record."""
        ...

    async def list_for_owner(
        self,
        owner_id: UUID,
        limit: int = 100,
    ) -> Sequence[CallRecord]:
        """List an owner's records, newest first."""
        ...


class CallRecordRepository:
    """Repository for call record database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(
        self,
        *,
        external_id: ExternalCallId,
        from_number: str,
        to_number: str,
        direction: CallDirection,
        status: CallStatus = CallStatus.INITIATED,
        owner_id: UUID | None = None,
        created_at: datetime | None = None,
        raw_payload: dict[str, Any] | None = None,
    ) -> CallRecord:
        """Create a new call record.

        Args:
            external_id: Provider identifiers for the call.
            from_number: Calling number.
            to_number: Called number.
            direction: Call direction.
            status: Initial status.
            owner_id: Owning user, None if unresolved.
            created_at: Creation time override (defaults to now).
            raw_payload: Provider payload that created the record.

        Returns:
            Created CallRecord.
        """
        record = CallRecord(
            call_control_id=external_id.call_control_id,
            call_leg_id=external_id.call_leg_id,
            from_number=from_number,
            to_number=to_number,
            direction=direction,
            status=status,
            owner_id=owner_id,
            last_provider_payload=raw_payload,
        )
        if created_at is not None:
            record.created_at = created_at

        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)
        return record

    async def find_by_external_id(
        self,
        external_id: ExternalCallId,
        *,
        for_update: bool = False,
    ) -> CallRecord | None:
        """Find the record whose call-control id or leg id matches.

        Args:
            external_id: Lookup key.
            for_update: Lock the row for a read-modify-write in the current
                transaction (no-op on SQLite) and overwrite any stale copy
                the session already holds.

        Returns:
            CallRecord if found, None otherwise.
        """
        stmt = (
            select(CallRecord)
            .where(external_id.clause())
            .order_by(CallRecord.created_at)
            .limit(1)
        )
        if for_update:
            # refresh a row already in the identity map with the locked values
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def update(self, record: CallRecord) -> CallRecord:
        """Flush pending changes on ``record`` and reload it."""
        await self._session.flush()
        await self._session.refresh(record)
        return record

    async def list_for_owner(
        self,
        owner_id: UUID,
        limit: int = 100,
    ) -> Sequence[CallRecord]:
        """List call records owned by a user, newest first."""
        stmt = (
            select(CallRecord)
            .where(CallRecord.owner_id == owner_id)
            .order_by(CallRecord.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()
