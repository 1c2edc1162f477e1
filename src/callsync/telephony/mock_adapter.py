"""
Mock provider gateway for local development and tests.

Records every request it receives and can be told to fail the next calls.
"""

from dataclasses import dataclass, field
from typing import Any

from callsync.shared.logging import get_logger
from callsync.telephony.interface import (
    CallCreateRequest,
    CallCreateResponse,
    ProviderError,
    ProviderGateway,
    ProviderNotFoundError,
    ProviderPhoneNumber,
)

logger = get_logger(__name__)


@dataclass
class RecordedAction:
    """One call action received by the mock."""

    action: str
    call_control_id: str
    body: dict[str, Any] = field(default_factory=dict)


class MockProviderGateway(ProviderGateway):
    """In-memory ProviderGateway."""

    def __init__(self) -> None:
        self._created: list[CallCreateRequest] = []
        self._actions: list[RecordedAction] = []
        self._numbers: dict[str, ProviderPhoneNumber] = {}
        self._next_call_id = 1
        self._failure: ProviderError | None = None

    def reset(self) -> None:
        self._created.clear()
        self._actions.clear()
        self._numbers.clear()
        self._next_call_id = 1
        self._failure = None

    def configure_failure(
        self,
        should_fail: bool = True,
        error_message: str = "Mock failure",
        error_code: str = "MOCK_ERROR",
        status_code: int | None = 500,
    ) -> None:
        """Make every following request fail (404 raises ProviderNotFoundError)."""
        if not should_fail:
            self._failure = None
            return
        error_cls = ProviderNotFoundError if status_code == 404 else ProviderError
        self._failure = error_cls(
            message=error_message,
            status_code=status_code,
            error_code=error_code,
        )

    def add_number(
        self,
        phone_number: str,
        connection_id: str | None = None,
        number_id: str | None = None,
    ) -> ProviderPhoneNumber:
        number = ProviderPhoneNumber(
            id=number_id or f"MOCK_NUMBER_{len(self._numbers) + 1:06d}",
            phone_number=phone_number,
            connection_id=connection_id,
        )
        self._numbers[number.id] = number
        return number

    @property
    def created_calls(self) -> list[CallCreateRequest]:
        return self._created.copy()

    @property
    def actions(self) -> list[RecordedAction]:
        return self._actions.copy()

    def _check_failure(self) -> None:
        if self._failure is not None:
            raise self._failure

    async def create_call(self, request: CallCreateRequest) -> CallCreateResponse:
        logger.info(
            "Mock: creating call",
            extra={"to": request.to, "from": request.from_number},
        )
        self._check_failure()
        self._created.append(request)

        seq = self._next_call_id
        self._next_call_id += 1
        call_control_id = f"MOCK_CCID_{seq:06d}"
        call_leg_id = f"MOCK_LEG_{seq:06d}"
        return CallCreateResponse(
            call_control_id=call_control_id,
            call_leg_id=call_leg_id,
            call_session_id=f"MOCK_SESSION_{seq:06d}",
            raw_response={"mock": True, "call_control_id": call_control_id},
        )

    async def _record(self, action: str, call_control_id: str, **body: Any) -> None:
        self._check_failure()
        self._actions.append(RecordedAction(action, call_control_id, dict(body)))

    async def answer_call(self, call_control_id: str) -> None:
        await self._record("answer", call_control_id)

    async def hangup_call(self, call_control_id: str) -> None:
        await self._record("hangup", call_control_id)

    async def reject_call(self, call_control_id: str, cause: str = "CALL_REJECTED") -> None:
        await self._record("reject", call_control_id, cause=cause)

    async def send_dtmf(self, call_control_id: str, digits: str) -> None:
        await self._record("send_dtmf", call_control_id, digits=digits)

    async def connect_webrtc(self, call_control_id: str) -> None:
        await self._record("connect_webrtc", call_control_id)

    async def find_phone_number(self, phone_number: str) -> ProviderPhoneNumber | None:
        self._check_failure()
        for number in self._numbers.values():
            if number.phone_number == phone_number:
                return number
        return None

    async def assign_connection(
        self,
        provider_number_id: str,
        connection_id: str,
    ) -> ProviderPhoneNumber:
        self._check_failure()
        existing = self._numbers.get(provider_number_id)
        if existing is None:
            raise ProviderNotFoundError(
                message="Mock number not found",
                status_code=404,
                error_code="NOT_FOUND",
            )
        updated = ProviderPhoneNumber(
            id=existing.id,
            phone_number=existing.phone_number,
            connection_id=connection_id,
        )
        self._numbers[provider_number_id] = updated
        return updated
