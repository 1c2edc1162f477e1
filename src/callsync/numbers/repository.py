"""
Repository for phone number database operations.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callsync.numbers.models import PhoneNumber, normalize_number


class PhoneNumberRepository:
    """Repository for phone number database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _candidates(phone_number: str) -> list[str]:
        raw = (phone_number or "").strip()
        normalized = normalize_number(raw)
        return sorted({raw, normalized})

    async def get_by_number(self, phone_number: str) -> PhoneNumber | None:
        """Get a phone number by its dialable value, tolerating formatting."""
        stmt = select(PhoneNumber).where(
            PhoneNumber.phone_number.in_(self._candidates(phone_number))
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def get_owned_by_number(
        self,
        owner_id: UUID,
        phone_number: str,
    ) -> PhoneNumber | None:
        """Get a phone number only if ``owner_id`` owns it."""
        stmt = select(PhoneNumber).where(
            PhoneNumber.owner_id == owner_id,
            PhoneNumber.phone_number.in_(self._candidates(phone_number)),
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def get_owned_by_id(self, owner_id: UUID, number_id: UUID) -> PhoneNumber | None:
        """Get a phone number by id only if ``owner_id`` owns it."""
        stmt = select(PhoneNumber).where(
            PhoneNumber.id == number_id,
            PhoneNumber.owner_id == owner_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_owner(self, owner_id: UUID) -> Sequence[PhoneNumber]:
        stmt = (
            select(PhoneNumber)
            .where(PhoneNumber.owner_id == owner_id)
            .order_by(PhoneNumber.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def create(
        self,
        *,
        owner_id: UUID,
        phone_number: str,
        provider_number_id: str | None = None,
        connection_id: str | None = None,
    ) -> PhoneNumber:
        """Create a phone number record (stored normalized)."""
        number = PhoneNumber(
            owner_id=owner_id,
            phone_number=normalize_number(phone_number),
            provider_number_id=provider_number_id,
            connection_id=connection_id,
        )
        self._session.add(number)
        await self._session.flush()
        await self._session.refresh(number)
        return number

    async def update(self, number: PhoneNumber) -> PhoneNumber:
        await self._session.flush()
        await self._session.refresh(number)
        return number
