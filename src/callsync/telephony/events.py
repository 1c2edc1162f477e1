"""
Domain event models for provider call webhooks.

Provider payloads arrive with several historical spellings for the same
thing (event names, direction values, id and duration fields). They are
normalized here, once, into a CallEvent; nothing downstream looks at raw
spellings again.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from callsync.calls.models import CallDirection, ExternalCallId
from callsync.telephony.interface import WebhookParseError


class CallEventType(str, Enum):
    """Closed set of call events the reconciler understands."""

    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    HANGUP = "hangup"
    REJECTED = "rejected"
    FAILED = "failed"


# Provider event names (lower-cased) -> event type
EVENT_TYPE_MAP: dict[str, CallEventType] = {
    "call.initiated": CallEventType.INITIATED,
    "call.ringing": CallEventType.RINGING,
    "call.answered": CallEventType.ANSWERED,
    "call.hangup": CallEventType.HANGUP,
    "call.ended": CallEventType.HANGUP,
    "call.completed": CallEventType.HANGUP,
    "call.rejected": CallEventType.REJECTED,
    "call.declined": CallEventType.REJECTED,
    "call.failed": CallEventType.FAILED,
}

DIRECTION_MAP: dict[str, CallDirection] = {
    "incoming": CallDirection.INBOUND,
    "inbound": CallDirection.INBOUND,
    "outgoing": CallDirection.OUTBOUND,
    "outbound": CallDirection.OUTBOUND,
}

DURATION_FIELDS: tuple[str, ...] = (
    "duration_secs",
    "duration_seconds",
    "duration",
    "call_duration",
)

REJECT_CAUSES: frozenset[str] = frozenset(
    {"call_rejected", "rejected", "declined"}
)
REJECT_STATES: frozenset[str] = frozenset({"rejected", "declined"})


class CallEvent(BaseModel):
    """Normalized provider call event."""

    model_config = ConfigDict(frozen=True)

    event_type: CallEventType = Field(..., description="Normalized event type")
    provider_event_type: str = Field(..., description="Event name as sent by the provider")
    external_id: ExternalCallId = Field(..., description="Provider call identifiers")
    direction: CallDirection = Field(..., description="Normalized call direction")
    from_number: str = Field(default="", description="Calling number")
    to_number: str = Field(default="", description="Called number")
    duration_seconds: int | None = Field(
        default=None,
        description="Provider-reported duration, if any",
    )
    rejected: bool = Field(
        default=False,
        description="Payload explicitly marks the call as rejected/declined",
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Event timestamp",
    )
    raw_payload: dict[str, Any] = Field(default_factory=dict)


def _first(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _parse_direction(payload: dict[str, Any]) -> CallDirection:
    raw = str(payload.get("direction") or "").strip().lower()
    direction = DIRECTION_MAP.get(raw)
    if direction is not None:
        return direction
    # No usable direction: a session id is only present on provider-originated legs
    return CallDirection.INBOUND if payload.get("call_session_id") else CallDirection.OUTBOUND


def _parse_duration(payload: dict[str, Any]) -> int | None:
    raw = _first(payload, *DURATION_FIELDS)
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(value):
        return None
    return max(0, int(value))


def _is_rejected(payload: dict[str, Any]) -> bool:
    if payload.get("rejected") is True or payload.get("reject_reason"):
        return True
    cause = str(payload.get("hangup_cause") or "").strip().lower()
    if cause in REJECT_CAUSES:
        return True
    state = str(_first(payload, "state", "status") or "").strip().lower()
    return state in REJECT_STATES


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.now(timezone.utc)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def parse_voice_event(body: Any) -> CallEvent | None:
    """Normalize a provider webhook body.

    Args:
        body: Decoded JSON body, ``{"data": {"event_type": ..., "payload": {...}}}``.

    Returns:
        CallEvent, or None for events outside the call lifecycle.

    Raises:
        WebhookParseError: If the body has no payload or no call identifiers.
    """
    if not isinstance(body, dict):
        raise WebhookParseError("Webhook body is not a JSON object")

    data = body.get("data")
    if not isinstance(data, dict):
        raise WebhookParseError("Webhook body has no data object")

    payload = data.get("payload")
    if not isinstance(payload, dict):
        raise WebhookParseError("Webhook body has no payload")

    provider_event_type = str(data.get("event_type") or "").strip().lower()
    event_type = EVENT_TYPE_MAP.get(provider_event_type)
    if event_type is None:
        return None

    call_control_id = _first(payload, "call_control_id")
    call_leg_id = _first(payload, "call_leg_id")
    if not call_control_id and not call_leg_id:
        raise WebhookParseError(
            "Webhook payload has no call identifiers",
            provider_response=payload,
        )

    return CallEvent(
        event_type=event_type,
        provider_event_type=provider_event_type,
        external_id=ExternalCallId(
            call_control_id=str(call_control_id) if call_control_id else None,
            call_leg_id=str(call_leg_id) if call_leg_id else None,
        ),
        direction=_parse_direction(payload),
        from_number=str(_first(payload, "from", "caller_id_number") or ""),
        to_number=str(_first(payload, "to", "callee_id_number") or ""),
        duration_seconds=_parse_duration(payload),
        rejected=_is_rejected(payload),
        occurred_at=_parse_timestamp(data.get("occurred_at")),
        raw_payload=payload,
    )
