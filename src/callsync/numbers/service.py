"""
Voice enablement for owned phone numbers.

A number can only place calls once it is attached to a voice connection at
the provider. This service performs that attachment and records the
connection id locally.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from callsync.notifications.models import NotificationType
from callsync.notifications.repository import NotificationRepository
from callsync.numbers.models import PhoneNumber
from callsync.numbers.repository import PhoneNumberRepository
from callsync.shared.exceptions import NotFoundError, StateConflictError, UpstreamError
from callsync.shared.logging import get_logger
from callsync.telephony.config import TelephonyConfig
from callsync.telephony.interface import ProviderError, ProviderGateway

logger = get_logger(__name__)


class NumberVoiceService:
    """Attaches owned numbers to the configured voice connection."""

    def __init__(
        self,
        session: AsyncSession,
        gateway: ProviderGateway,
        config: TelephonyConfig | None = None,
    ) -> None:
        self._numbers = PhoneNumberRepository(session)
        self._notifications = NotificationRepository(session)
        self._gateway = gateway
        self._config = config or TelephonyConfig()

    async def list_numbers(self, owner_id: UUID) -> list[PhoneNumber]:
        return list(await self._numbers.list_for_owner(owner_id))

    async def enable_voice(self, owner_id: UUID, number_id: UUID) -> PhoneNumber:
        """Attach one of the caller's numbers to the voice connection.

        Args:
            owner_id: Authenticated user.
            number_id: Local phone number id.

        Returns:
            The updated phone number, with ``connection_id`` set.

        Raises:
            NotFoundError: If the caller does not own the number, or the
                provider does not know it.
            StateConflictError: If no voice connection is configured.
            UpstreamError: If the provider request fails.
        """
        number = await self._numbers.get_owned_by_id(owner_id, number_id)
        if number is None:
            raise NotFoundError("Phone number not found", details={"number_id": str(number_id)})

        connection_id = self._config.telnyx_connection_id
        if not connection_id:
            raise StateConflictError("No voice connection is configured")

        try:
            remote = await self._gateway.find_phone_number(number.phone_number)
            if remote is None:
                raise NotFoundError(
                    "Phone number not found at provider",
                    details={"phone_number": number.phone_number},
                )
            if remote.connection_id != connection_id:
                remote = await self._gateway.assign_connection(remote.id, connection_id)
        except ProviderError as e:
            logger.error(
                "Enabling voice failed at provider",
                extra={
                    "number_id": str(number_id),
                    "status_code": e.status_code,
                    "error_code": e.error_code,
                },
            )
            raise UpstreamError() from e

        number.provider_number_id = remote.id
        number.connection_id = remote.connection_id or connection_id
        number = await self._numbers.update(number)

        await self._notifications.create(
            user_id=owner_id,
            type=NotificationType.NUMBER,
            title="Voice enabled",
            message=f"Voice calling enabled for {number.phone_number}",
            data={"phoneNumber": number.phone_number},
        )
        logger.info(
            "Voice enabled for number",
            extra={"number_id": str(number.id), "connection_id": number.connection_id},
        )
        return number
