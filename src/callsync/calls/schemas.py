"""
Pydantic schemas for the call control API.
"""

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from callsync.calls.models import CallDirection, CallRecord, CallStatus

_DTMF_DIGITS = re.compile(r"^[0-9A-Da-d*#wW]+$")


class OutboundCallRequest(BaseModel):
    """Request body for placing an outbound call."""

    from_number: str = Field(
        ...,
        alias="from",
        min_length=1,
        max_length=32,
        description="Caller's own phone number to call from",
    )
    to: str = Field(..., min_length=1, max_length=32, description="Destination number")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("from_number", "to")
    @classmethod
    def strip_number(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("phone number must not be blank")
        return v


class DTMFRequest(BaseModel):
    """Request body for sending DTMF tones."""

    digits: str = Field(..., min_length=1, max_length=64, description="DTMF digits")

    @field_validator("digits")
    @classmethod
    def validate_digits(cls, v: str) -> str:
        if not _DTMF_DIGITS.match(v):
            raise ValueError("digits may only contain 0-9, A-D, *, # and w/W pauses")
        return v


class CallRecordResponse(BaseModel):
    """Call record as returned to the dashboard."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    call_control_id: str | None
    call_leg_id: str | None
    from_number: str
    to_number: str
    direction: CallDirection
    status: CallStatus
    duration_seconds: int | None
    owner_id: UUID | None
    created_at: datetime
    updated_at: datetime


class CallActionResponse(BaseModel):
    """Acknowledgement of a pass-through call action."""

    call_control_id: str
    action: str
    status: str = "ok"


def call_push_payload(record: CallRecord) -> dict[str, Any]:
    """Data object carried by call push messages."""
    return {
        "callId": str(record.id),
        "callControlId": record.call_control_id,
        "callLegId": record.call_leg_id,
        "from": record.from_number,
        "to": record.to_number,
        "direction": record.direction.value,
        "status": record.status.value,
        "durationSeconds": record.duration_seconds,
    }
