"""Tests for the Telnyx gateway against a mocked HTTP transport."""

import json
from collections.abc import Callable

import httpx
import pytest

from callsync.telephony.config import ProviderType, TelephonyConfig
from callsync.telephony.interface import (
    CallCreateRequest,
    ProviderError,
    ProviderNotFoundError,
)
from callsync.telephony.telnyx_adapter import TelnyxGateway

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def config() -> TelephonyConfig:
    return TelephonyConfig(
        provider_type=ProviderType.TELNYX,
        telnyx_api_key="KEY_TEST",
        telnyx_api_base_url="https://api.telnyx.test/v2",
        telnyx_connection_id="conn-1",
        webhook_base_url="https://dashboard.example.com",
    )


def _gateway(config: TelephonyConfig, handler: Handler) -> TelnyxGateway:
    client = httpx.AsyncClient(
        base_url=config.telnyx_api_base_url,
        headers={"Authorization": f"Bearer {config.telnyx_api_key}"},
        transport=httpx.MockTransport(handler),
    )
    return TelnyxGateway(config, http_client=client)


class TestCreateCall:
    @pytest.mark.asyncio
    async def test_posts_call_and_reads_identifiers(self, config: TelephonyConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "data": {
                        "call_control_id": "v3:abc",
                        "call_leg_id": "leg-abc",
                        "call_session_id": "sess-abc",
                    }
                },
            )

        gateway = _gateway(config, handler)
        response = await gateway.create_call(
            CallCreateRequest(
                connection_id="conn-1",
                to="+15558887777",
                from_number="+15551230000",
                timeout_secs=30,
                webhook_url="https://dashboard.example.com/webhooks/voice",
            )
        )

        assert response.call_control_id == "v3:abc"
        assert response.call_leg_id == "leg-abc"
        assert response.call_session_id == "sess-abc"

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v2/calls"
        assert request.headers["Authorization"] == "Bearer KEY_TEST"
        assert json.loads(request.content) == {
            "connection_id": "conn-1",
            "to": "+15558887777",
            "from": "+15551230000",
            "timeout_secs": 30,
            "webhook_url": "https://dashboard.example.com/webhooks/voice",
        }

    @pytest.mark.asyncio
    async def test_response_without_identifiers_is_an_error(
        self,
        config: TelephonyConfig,
    ) -> None:
        gateway = _gateway(config, lambda request: httpx.Response(200, json={"data": {}}))

        with pytest.raises(ProviderError) as exc_info:
            await gateway.create_call(
                CallCreateRequest(connection_id="conn-1", to="+1555", from_number="+1555")
            )

        assert exc_info.value.error_code == "INVALID_RESPONSE"


class TestCallActions:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method_name", "args", "path", "body"),
        [
            ("answer_call", (), "answer", {}),
            ("hangup_call", (), "hangup", {}),
            ("reject_call", ("CALL_REJECTED",), "reject", {"cause": "CALL_REJECTED"}),
            ("send_dtmf", ("123#",), "send_dtmf", {"digits": "123#"}),
            ("connect_webrtc", (), "connect_webrtc", {}),
        ],
    )
    async def test_action_endpoints(
        self,
        config: TelephonyConfig,
        method_name: str,
        args: tuple,
        path: str,
        body: dict,
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {"result": "ok"}})

        gateway = _gateway(config, handler)
        await getattr(gateway, method_name)("v3:abc", *args)

        assert seen[0].method == "POST"
        assert seen[0].url.path == f"/v2/calls/v3:abc/actions/{path}"
        assert json.loads(seen[0].content) == body

    @pytest.mark.asyncio
    async def test_404_raises_not_found(self, config: TelephonyConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404,
                json={"errors": [{"code": "90018", "title": "Call has already ended"}]},
            )

        gateway = _gateway(config, handler)

        with pytest.raises(ProviderNotFoundError) as exc_info:
            await gateway.hangup_call("v3:gone")

        assert exc_info.value.status_code == 404
        assert exc_info.value.error_code == "90018"

    @pytest.mark.asyncio
    async def test_server_error_raises_provider_error(self, config: TelephonyConfig) -> None:
        gateway = _gateway(config, lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(ProviderError) as exc_info:
            await gateway.answer_call("v3:abc")

        assert not isinstance(exc_info.value, ProviderNotFoundError)
        assert exc_info.value.status_code == 503
        assert exc_info.value.provider_response == {"body": "unavailable"}

    @pytest.mark.asyncio
    async def test_timeout_raises_provider_error(self, config: TelephonyConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        gateway = _gateway(config, handler)

        with pytest.raises(ProviderError) as exc_info:
            await gateway.answer_call("v3:abc")

        assert exc_info.value.error_code == "HTTP_ERROR"


class TestPhoneNumbers:
    @pytest.mark.asyncio
    async def test_find_phone_number_filters_by_number(self, config: TelephonyConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"data": [{"id": "pn-1", "phone_number": "+15551230000", "connection_id": ""}]},
            )

        gateway = _gateway(config, handler)
        number = await gateway.find_phone_number("+15551230000")

        assert number is not None
        assert number.id == "pn-1"
        assert number.connection_id is None
        assert seen[0].url.params["filter[phone_number]"] == "+15551230000"

    @pytest.mark.asyncio
    async def test_find_phone_number_none_when_empty(self, config: TelephonyConfig) -> None:
        gateway = _gateway(config, lambda request: httpx.Response(200, json={"data": []}))

        assert await gateway.find_phone_number("+15551230000") is None

    @pytest.mark.asyncio
    async def test_assign_connection_patches_number(self, config: TelephonyConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "data": {
                        "id": "pn-1",
                        "phone_number": "+15551230000",
                        "connection_id": "conn-1",
                    }
                },
            )

        gateway = _gateway(config, handler)
        number = await gateway.assign_connection("pn-1", "conn-1")

        assert number.connection_id == "conn-1"
        assert seen[0].method == "PATCH"
        assert seen[0].url.path == "/v2/phone_numbers/pn-1"
        assert json.loads(seen[0].content) == {"connection_id": "conn-1"}


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_owned_client_carries_auth_and_timeout(self, config: TelephonyConfig) -> None:
        gateway = TelnyxGateway(config)

        client = gateway._get_client()

        assert client.headers["Authorization"] == "Bearer KEY_TEST"
        assert client.timeout.read == config.request_timeout_seconds
        await gateway.close()
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, config: TelephonyConfig) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        gateway = TelnyxGateway(config, http_client=client)

        await gateway.close()

        assert not client.is_closed
        await client.aclose()
