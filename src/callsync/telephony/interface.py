"""
Telephony provider gateway interface definition.

Every outbound interaction with the provider's call-control REST API goes
through a ProviderGateway. Implementations raise ProviderError (or its
ProviderNotFoundError subclass) and never leak transport exceptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CallCreateRequest:
    """Request to place an outbound call."""

    connection_id: str
    to: str
    from_number: str
    timeout_secs: int = 30
    webhook_url: str | None = None


@dataclass(frozen=True)
class CallCreateResponse:
    """Provider identifiers of a newly placed call."""

    call_control_id: str | None
    call_leg_id: str | None
    call_session_id: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderPhoneNumber:
    """Provider-side view of a phone number."""

    id: str
    phone_number: str
    connection_id: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


class ProviderError(Exception):
    """Base exception for telephony provider errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.provider_response = provider_response or {}


class ProviderNotFoundError(ProviderError):
    """The provider reported the call or resource does not exist (HTTP 404)."""


class WebhookParseError(ProviderError):
    """Error parsing a webhook body."""


class ProviderGateway(ABC):
    """Abstract interface for the telephony provider's call-control API."""

    @abstractmethod
    async def create_call(self, request: CallCreateRequest) -> CallCreateResponse:
        """Place an outbound call."""
        ...

    @abstractmethod
    async def answer_call(self, call_control_id: str) -> None:
        ...

    @abstractmethod
    async def hangup_call(self, call_control_id: str) -> None:
        ...

    @abstractmethod
    async def reject_call(self, call_control_id: str, cause: str = "CALL_REJECTED") -> None:
        ...

    @abstractmethod
    async def send_dtmf(self, call_control_id: str, digits: str) -> None:
        ...

    @abstractmethod
    async def connect_webrtc(self, call_control_id: str) -> None:
        """Connect the call's media to the browser client."""
        ...

    @abstractmethod
    async def find_phone_number(self, phone_number: str) -> ProviderPhoneNumber | None:
        """Look a number up at the provider by filter."""
        ...

    @abstractmethod
    async def assign_connection(
        self,
        provider_number_id: str,
        connection_id: str,
    ) -> ProviderPhoneNumber:
        """Attach a provider number to a voice connection."""
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
