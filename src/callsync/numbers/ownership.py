"""
Resolve which dashboard user owns a phone number.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from callsync.numbers.repository import PhoneNumberRepository
from callsync.shared.logging import get_logger

logger = get_logger(__name__)


class OwnershipResolverProtocol(Protocol):
    """Protocol for phone number ownership lookups."""

    async def resolve_owner_for_number(self, phone_number: str | None) -> UUID | None:
        """Return the owning user id, or None if unowned."""
        ...


class OwnershipResolver:
    """Maps a dialed phone number to the user who owns it."""

    def __init__(self, session: AsyncSession) -> None:
        self._numbers = PhoneNumberRepository(session)

    async def resolve_owner_for_number(self, phone_number: str | None) -> UUID | None:
        """Resolve the owner of ``phone_number``.

        Args:
            phone_number: Number in any common formatting.

        Returns:
            Owner user id, or None when the number is empty or not owned by
            any user.
        """
        if not phone_number or not phone_number.strip():
            return None

        number = await self._numbers.get_by_number(phone_number)
        if number is None:
            logger.info(
                "No owner for phone number",
                extra={"phone_number": phone_number},
            )
            return None
        return number.owner_id
