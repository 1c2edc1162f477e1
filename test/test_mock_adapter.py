"""Tests for the mock provider gateway."""

import pytest

from callsync.telephony.interface import (
    CallCreateRequest,
    ProviderError,
    ProviderNotFoundError,
)
from callsync.telephony.mock_adapter import MockProviderGateway


@pytest.fixture
def call_request() -> CallCreateRequest:
    return CallCreateRequest(
        connection_id="conn-1",
        to="+14155551234",
        from_number="+14155550000",
        webhook_url="https://example.com/webhooks/voice",
    )


class TestMockCreateCall:
    @pytest.mark.asyncio
    async def test_create_call_success(
        self,
        gateway: MockProviderGateway,
        call_request: CallCreateRequest,
    ) -> None:
        response = await gateway.create_call(call_request)

        assert response.call_control_id == "MOCK_CCID_000001"
        assert response.call_leg_id == "MOCK_LEG_000001"
        assert response.raw_response["mock"] is True
        assert gateway.created_calls == [call_request]

    @pytest.mark.asyncio
    async def test_ids_increment(
        self,
        gateway: MockProviderGateway,
        call_request: CallCreateRequest,
    ) -> None:
        first = await gateway.create_call(call_request)
        second = await gateway.create_call(call_request)

        assert first.call_control_id != second.call_control_id
        assert "000002" in str(second.call_control_id)

    @pytest.mark.asyncio
    async def test_configured_failure(
        self,
        gateway: MockProviderGateway,
        call_request: CallCreateRequest,
    ) -> None:
        gateway.configure_failure(error_message="Test failure", error_code="TEST_ERROR")

        with pytest.raises(ProviderError) as exc_info:
            await gateway.create_call(call_request)

        assert exc_info.value.error_code == "TEST_ERROR"
        assert gateway.created_calls == []

    @pytest.mark.asyncio
    async def test_configured_404_raises_not_found(
        self,
        gateway: MockProviderGateway,
    ) -> None:
        gateway.configure_failure(status_code=404)

        with pytest.raises(ProviderNotFoundError):
            await gateway.hangup_call("v3:gone")

    @pytest.mark.asyncio
    async def test_failure_can_be_cleared(
        self,
        gateway: MockProviderGateway,
    ) -> None:
        gateway.configure_failure()
        gateway.configure_failure(should_fail=False)

        await gateway.answer_call("v3:abc")

        assert gateway.actions[0].action == "answer"

    @pytest.mark.asyncio
    async def test_reset(
        self,
        gateway: MockProviderGateway,
        call_request: CallCreateRequest,
    ) -> None:
        await gateway.create_call(call_request)
        await gateway.send_dtmf("v3:abc", "1")

        gateway.reset()

        assert gateway.created_calls == []
        assert gateway.actions == []


class TestMockNumbers:
    @pytest.mark.asyncio
    async def test_assign_connection(self, gateway: MockProviderGateway) -> None:
        number = gateway.add_number("+15551230000")

        updated = await gateway.assign_connection(number.id, "conn-1")

        assert updated.connection_id == "conn-1"
        found = await gateway.find_phone_number("+15551230000")
        assert found is not None
        assert found.connection_id == "conn-1"

    @pytest.mark.asyncio
    async def test_assign_unknown_number(self, gateway: MockProviderGateway) -> None:
        with pytest.raises(ProviderNotFoundError):
            await gateway.assign_connection("missing", "conn-1")
