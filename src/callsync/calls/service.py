"""
Call control service: the dashboard's action surface on live calls.
"""

from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from callsync.calls.lifecycle import apply_duration, is_terminal, utc_now
from callsync.calls.models import CallDirection, CallRecord, CallStatus, ExternalCallId
from callsync.calls.repository import CallRecordRepository
from callsync.notifications.models import NotificationType
from callsync.notifications.repository import NotificationRepository
from callsync.numbers.repository import PhoneNumberRepository
from callsync.shared.exceptions import (
    AppException,
    NotFoundError,
    StateConflictError,
    UpstreamError,
    ValidationError,
)
from callsync.shared.logging import get_logger
from callsync.telephony.config import TelephonyConfig
from callsync.telephony.interface import (
    CallCreateRequest,
    ProviderError,
    ProviderGateway,
    ProviderNotFoundError,
)

logger = get_logger(__name__)

REJECT_CAUSE = "CALL_REJECTED"


class CallControlService:
    """Places outbound calls and forwards call actions to the provider.

    Provider failures never leak: a provider 404 becomes NotFoundError and
    anything else becomes a generic UpstreamError, with the provider detail
    logged.
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: ProviderGateway,
        config: TelephonyConfig | None = None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the service.

        Args:
            session: Async database session.
            gateway: Provider gateway.
            config: Telephony configuration. If None, loads from environment.
            now_fn: Clock, injectable for deterministic durations.
        """
        self._session = session
        self._calls = CallRecordRepository(session)
        self._numbers = PhoneNumberRepository(session)
        self._notifications = NotificationRepository(session)
        self._gateway = gateway
        self._config = config or TelephonyConfig()
        self._now = now_fn

    async def initiate_outbound_call(
        self,
        caller_id: UUID,
        from_number: str,
        to_number: str,
    ) -> CallRecord:
        """Place an outbound call from one of the caller's numbers.

        Args:
            caller_id: Authenticated user placing the call.
            from_number: Caller-owned number to call from.
            to_number: Destination number.

        Returns:
            The call record (status initiated, direction outbound).

        Raises:
            ValidationError: If either number is missing.
            NotFoundError: If the caller does not own ``from_number``.
            StateConflictError: If ``from_number`` has no voice connection.
            UpstreamError: If the provider rejects the call.
        """
        from_number = (from_number or "").strip()
        to_number = (to_number or "").strip()
        if not from_number or not to_number:
            raise ValidationError(
                "from and to are required",
                details={"from": bool(from_number), "to": bool(to_number)},
            )

        number = await self._numbers.get_owned_by_number(caller_id, from_number)
        if number is None:
            raise NotFoundError(
                "Phone number not found",
                details={"from": from_number},
            )
        if not number.connection_id:
            raise StateConflictError(
                "Voice is not enabled for this phone number",
                details={"from": number.phone_number},
            )

        request = CallCreateRequest(
            connection_id=number.connection_id,
            to=to_number,
            from_number=number.phone_number,
            timeout_secs=self._config.call_timeout_secs,
            webhook_url=self._config.get_webhook_url(),
        )
        try:
            response = await self._gateway.create_call(request)
        except ProviderError as e:
            raise self._translate(e, "create_call") from e

        external_id = ExternalCallId(
            call_control_id=response.call_control_id,
            call_leg_id=response.call_leg_id,
        )
        record = await self._calls.find_by_external_id(external_id, for_update=True)
        if record is None:
            record = await self._calls.create(
                external_id=external_id,
                from_number=number.phone_number,
                to_number=to_number,
                direction=CallDirection.OUTBOUND,
                status=CallStatus.INITIATED,
                owner_id=caller_id,
                created_at=self._now(),
                raw_payload=response.raw_response,
            )
        else:
            # The initiated webhook arrived first and already created it
            if record.owner_id is None:
                record.owner_id = caller_id
            if record.call_control_id is None:
                record.call_control_id = response.call_control_id
            if record.call_leg_id is None:
                record.call_leg_id = response.call_leg_id
            record = await self._calls.update(record)

        await self._notifications.create(
            user_id=caller_id,
            type=NotificationType.CALL,
            title="Outbound call started",
            message=f"Call to {to_number} started",
            data={"from": number.phone_number, "to": to_number, "callId": str(record.id)},
        )

        logger.info(
            "Outbound call initiated",
            extra={
                "call_id": str(record.id),
                "call_control_id": record.call_control_id,
                "user_id": str(caller_id),
            },
        )
        return record

    async def answer_call(self, caller_id: UUID, call_control_id: str) -> None:
        """Answer a ringing inbound call."""
        call_control_id = await self._check_call(caller_id, call_control_id)
        try:
            await self._gateway.answer_call(call_control_id)
        except ProviderError as e:
            raise self._translate(e, "answer", call_control_id) from e

    async def hangup_call(self, caller_id: UUID, call_control_id: str) -> CallRecord | None:
        """Hang up a call and close out the local record.

        The local record (if any) moves to completed unless already terminal,
        and receives a computed duration if none is stored yet.

        Returns:
            The updated record, or None if the call is unknown locally.
        """
        call_control_id = await self._check_call(caller_id, call_control_id)
        try:
            await self._gateway.hangup_call(call_control_id)
        except ProviderError as e:
            raise self._translate(e, "hangup", call_control_id) from e

        record = await self._calls.find_by_external_id(
            ExternalCallId(call_control_id=call_control_id),
            for_update=True,
        )
        if record is None:
            return None

        if not is_terminal(record.status):
            record.status = CallStatus.COMPLETED
        apply_duration(record, provider_seconds=None, now=self._now())
        record = await self._calls.update(record)

        logger.info(
            "Call hung up",
            extra={
                "call_id": str(record.id),
                "status": record.status.value,
                "duration_seconds": record.duration_seconds,
            },
        )
        return record

    async def decline_call(self, caller_id: UUID, call_control_id: str) -> CallRecord | None:
        """Reject a ringing inbound call.

        The local record (if any) moves to declined unless already terminal,
        so a later plain hangup webhook keeps it declined.
        """
        call_control_id = await self._check_call(caller_id, call_control_id)
        try:
            await self._gateway.reject_call(call_control_id, REJECT_CAUSE)
        except ProviderError as e:
            raise self._translate(e, "reject", call_control_id) from e

        record = await self._calls.find_by_external_id(
            ExternalCallId(call_control_id=call_control_id),
            for_update=True,
        )
        if record is None:
            return None
        if not is_terminal(record.status):
            record.status = CallStatus.DECLINED
            record = await self._calls.update(record)
        return record

    async def send_dtmf(self, caller_id: UUID, call_control_id: str, digits: str) -> None:
        """Send DTMF tones on an active call."""
        if not digits:
            raise ValidationError("digits are required")
        call_control_id = await self._check_call(caller_id, call_control_id)
        try:
            await self._gateway.send_dtmf(call_control_id, digits)
        except ProviderError as e:
            raise self._translate(e, "send_dtmf", call_control_id) from e

    async def connect_to_media(self, caller_id: UUID, call_control_id: str) -> None:
        """Bridge the call's media to the caller's browser client."""
        call_control_id = await self._check_call(caller_id, call_control_id)
        try:
            await self._gateway.connect_webrtc(call_control_id)
        except ProviderError as e:
            raise self._translate(e, "connect_webrtc", call_control_id) from e

    async def list_call_logs(self, caller_id: UUID, limit: int = 100) -> Sequence[CallRecord]:
        """The caller's call records, newest first."""
        return await self._calls.list_for_owner(caller_id, limit=limit)

    async def _check_call(self, caller_id: UUID, call_control_id: str) -> str:
        """Validate the id and hide calls owned by another user.

        Calls unknown locally are passed through; the provider decides.
        """
        call_control_id = (call_control_id or "").strip()
        if not call_control_id:
            raise ValidationError("call control id is required")

        record = await self._calls.find_by_external_id(
            ExternalCallId(call_control_id=call_control_id)
        )
        if record is not None and record.owner_id is not None and record.owner_id != caller_id:
            logger.warning(
                "Call action on another user's call refused",
                extra={"call_id": str(record.id), "user_id": str(caller_id)},
            )
            raise NotFoundError("Call not found", details={"call_control_id": call_control_id})
        return call_control_id

    def _translate(
        self,
        error: ProviderError,
        operation: str,
        call_control_id: str | None = None,
    ) -> AppException:
        logger.error(
            "Provider request failed",
            extra={
                "operation": operation,
                "call_control_id": call_control_id,
                "status_code": error.status_code,
                "error_code": error.error_code,
                "provider_response": error.provider_response,
            },
        )
        if isinstance(error, ProviderNotFoundError):
            if call_control_id is None:
                return NotFoundError("Provider resource not found")
            return NotFoundError("Call not found", details={"call_control_id": call_control_id})
        return UpstreamError()
