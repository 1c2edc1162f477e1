"""
Webhook event reconciler for provider call events.

Applies one normalized CallEvent to the matching CallRecord, persists the
result and notifies the record owner's push connections.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from callsync.calls.lifecycle import apply_duration, can_transition, is_terminal, utc_now
from callsync.calls.models import CallDirection, CallRecord, CallStatus
from callsync.calls.repository import CallRecordRepository
from callsync.calls.schemas import call_push_payload
from callsync.notifications.models import NotificationType
from callsync.notifications.repository import NotificationRepository
from callsync.numbers.ownership import OwnershipResolver, OwnershipResolverProtocol
from callsync.realtime.messages import PushMessage, PushType
from callsync.shared.logging import get_logger
from callsync.telephony.events import CallEvent, CallEventType

logger = get_logger(__name__)


class PushHubProtocol(Protocol):
    """The hub operation the reconciler needs."""

    async def send_to_user(
        self,
        user_id: UUID | str,
        message: PushMessage | dict[str, Any],
    ) -> int:
        ...


@dataclass
class _Outcome:
    record: CallRecord | None
    changed: bool = False
    push_type: PushType | None = None


class WebhookReconciler:
    """State machine driven by provider call webhooks.

    Status only moves forward and terminal statuses (completed, declined,
    failed) are never left. Each ``handle_event`` call re-reads the record
    inside its own transaction before writing, so events racing on the same
    call cannot regress it.
    """

    def __init__(
        self,
        session: AsyncSession,
        push_hub: PushHubProtocol | None = None,
        ownership: OwnershipResolverProtocol | None = None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the reconciler.

        Args:
            session: Async database session (one per webhook).
            push_hub: Hub used to notify owners; None disables pushes.
            ownership: Phone number ownership resolver.
            now_fn: Clock, injectable for deterministic durations.
        """
        self._session = session
        self._calls = CallRecordRepository(session)
        self._notifications = NotificationRepository(session)
        self._ownership = ownership or OwnershipResolver(session)
        self._push_hub = push_hub
        self._now = now_fn

    async def handle_event(self, event: CallEvent) -> bool:
        """Apply a call event.

        Args:
            event: Normalized event.

        Returns:
            True if a record was created or changed, False if the event was a
            duplicate, out of order, or matched no record.
        """
        logger.info(
            "Processing call event",
            extra={
                "event_type": event.event_type.value,
                "provider_event_type": event.provider_event_type,
                "external_id": str(event.external_id),
            },
        )

        record = await self._calls.find_by_external_id(event.external_id, for_update=True)
        previous_status = record.status if record is not None else None

        match event.event_type:
            case CallEventType.INITIATED:
                outcome = await self._handle_initiated(record, event)
            case CallEventType.RINGING:
                outcome = self._handle_progress(record, event, CallStatus.RINGING, PushType.CALL_RINGING)
            case CallEventType.ANSWERED:
                outcome = self._handle_progress(record, event, CallStatus.ANSWERED, PushType.CALL_ANSWERED)
            case CallEventType.HANGUP:
                outcome = self._handle_hangup(record, event)
            case CallEventType.REJECTED:
                outcome = self._handle_rejected(record, event)
            case CallEventType.FAILED:
                outcome = self._handle_failed(record, event)

        record = outcome.record
        if record is None:
            logger.warning(
                "No call record for event",
                extra={
                    "event_type": event.event_type.value,
                    "external_id": str(event.external_id),
                },
            )
            return False

        if self._backfill_ids(record, event):
            outcome.changed = True

        if previous_status is not None and record.status != previous_status:
            await self._record_status_change(record)

        await self._session.commit()

        if outcome.changed:
            logger.info(
                "Call record updated",
                extra={
                    "call_id": str(record.id),
                    "event_type": event.event_type.value,
                    "status": record.status.value,
                    "duration_seconds": record.duration_seconds,
                },
            )
        else:
            logger.info(
                "Call event did not change record",
                extra={
                    "call_id": str(record.id),
                    "event_type": event.event_type.value,
                    "status": record.status.value,
                },
            )

        # Snapshot before the payload step, which may roll back and expire the row
        call_id = str(record.id)
        owner_id = record.owner_id
        push_data = call_push_payload(record)

        await self._store_payload(record, event, call_id)

        if outcome.push_type is not None and owner_id is not None:
            await self._notify(owner_id, call_id, PushMessage(type=outcome.push_type, data=push_data))

        return outcome.changed

    async def _handle_initiated(
        self,
        record: CallRecord | None,
        event: CallEvent,
    ) -> _Outcome:
        """Handle an initiated event.

        Creates the record on first sight. An inbound call is owned by whoever
        owns the dialed number; an outbound one by whoever owns the calling
        number. An existing record is left as is.
        """
        if record is not None:
            return _Outcome(record)

        owned_number = event.to_number if event.direction == CallDirection.INBOUND else event.from_number
        owner_id = await self._ownership.resolve_owner_for_number(owned_number)

        try:
            record = await self._calls.create(
                external_id=event.external_id,
                from_number=event.from_number,
                to_number=event.to_number,
                direction=event.direction,
                status=CallStatus.INITIATED,
                owner_id=owner_id,
                created_at=self._now(),
            )
        except IntegrityError:
            # A concurrent event for the same call created it first
            await self._session.rollback()
            record = await self._calls.find_by_external_id(event.external_id, for_update=True)
            return _Outcome(record)

        logger.info(
            "Call record created from webhook",
            extra={
                "call_id": str(record.id),
                "direction": record.direction.value,
                "owner_id": str(owner_id) if owner_id else None,
            },
        )

        if event.direction != CallDirection.INBOUND or owner_id is None:
            return _Outcome(record, changed=True)

        await self._notifications.create(
            user_id=owner_id,
            type=NotificationType.CALL,
            title="Incoming call",
            message=f"Incoming call {event.from_number} -> {event.to_number}",
            data={"from": event.from_number, "to": event.to_number, "callId": str(record.id)},
        )
        return _Outcome(record, changed=True, push_type=PushType.INBOUND_CALL)

    def _handle_progress(
        self,
        record: CallRecord | None,
        event: CallEvent,
        target: CallStatus,
        push_type: PushType,
    ) -> _Outcome:
        """Handle ringing/answered: move forward unless terminal or already past."""
        if record is None:
            return _Outcome(None)
        if not can_transition(record.status, target) or record.status == target:
            return _Outcome(record)
        record.status = target
        return _Outcome(record, changed=True, push_type=push_type)

    def _handle_hangup(self, record: CallRecord | None, event: CallEvent) -> _Outcome:
        """Handle hangup.

        A hangup ends the call as declined when the payload carries a reject
        marker, otherwise as completed, and announces it as CALL_ENDED. An
        already terminal status (a local decline included) is kept and not
        announced again; only the duration may still be filled in.
        """
        if record is None:
            return _Outcome(None)

        ended_now = not is_terminal(record.status)
        if ended_now:
            record.status = CallStatus.DECLINED if event.rejected else CallStatus.COMPLETED

        duration_set = apply_duration(record, provider_seconds=event.duration_seconds, now=self._now())

        # Already terminal: the end was announced by whichever event got there first
        return _Outcome(
            record,
            changed=ended_now or duration_set,
            push_type=PushType.CALL_ENDED if ended_now else None,
        )

    def _handle_rejected(self, record: CallRecord | None, event: CallEvent) -> _Outcome:
        if record is None:
            return _Outcome(None)
        if is_terminal(record.status):
            return _Outcome(record)
        record.status = CallStatus.DECLINED
        return _Outcome(record, changed=True, push_type=PushType.CALL_DECLINED)

    def _handle_failed(self, record: CallRecord | None, event: CallEvent) -> _Outcome:
        if record is None:
            return _Outcome(None)
        if is_terminal(record.status):
            return _Outcome(record)
        record.status = CallStatus.FAILED
        return _Outcome(record, changed=True)

    def _backfill_ids(self, record: CallRecord, event: CallEvent) -> bool:
        """Fill in whichever external id the record is missing."""
        changed = False
        if record.call_control_id is None and event.external_id.call_control_id:
            record.call_control_id = event.external_id.call_control_id
            changed = True
        if record.call_leg_id is None and event.external_id.call_leg_id:
            record.call_leg_id = event.external_id.call_leg_id
            changed = True
        return changed

    async def _record_status_change(self, record: CallRecord) -> None:
        """Audit notification for the owner of a call whose status moved."""
        if record.owner_id is None:
            return
        status = record.status.value
        await self._notifications.create(
            user_id=record.owner_id,
            type=NotificationType.CALL,
            title=f"Call {status}",
            message=f"Call {record.from_number} -> {record.to_number} {status}",
            data={
                "from": record.from_number,
                "to": record.to_number,
                "status": status,
                "callId": str(record.id),
            },
        )

    async def _store_payload(self, record: CallRecord, event: CallEvent, call_id: str) -> None:
        """Keep the latest provider payload. Never undoes the transition."""
        try:
            record.last_provider_payload = dict(event.raw_payload)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            logger.exception(
                "Storing provider payload failed",
                extra={"call_id": call_id, "event_type": event.event_type.value},
            )

    async def _notify(self, owner_id: UUID, call_id: str, message: PushMessage) -> None:
        if self._push_hub is None:
            return
        delivered = await self._push_hub.send_to_user(owner_id, message)
        logger.info(
            "Call push sent",
            extra={
                "call_id": call_id,
                "owner_id": str(owner_id),
                "push_type": message.type.value,
                "delivered": delivered,
            },
        )
