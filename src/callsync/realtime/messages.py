"""
Push message models sent to dashboard clients over the WebSocket.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PushType(str, Enum):
    """Push message types."""

    INBOUND_CALL = "INBOUND_CALL"
    CALL_RINGING = "CALL_RINGING"
    CALL_ANSWERED = "CALL_ANSWERED"
    CALL_ENDED = "CALL_ENDED"
    CALL_DECLINED = "CALL_DECLINED"
    # Liveness probe; clients answer with any message
    PING = "PING"


class PushMessage(BaseModel):
    """A single push message, serialized once per fan-out."""

    model_config = ConfigDict(frozen=True)

    type: PushType
    data: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> str:
        return self.model_dump_json()
