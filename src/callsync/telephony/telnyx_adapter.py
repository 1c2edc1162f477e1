"""
Telnyx call-control gateway.

Talks to the Telnyx v2 REST API with a bearer API key, JSON bodies and a
fixed request timeout.
"""

from typing import Any
from urllib.parse import quote

import httpx

from callsync.shared.logging import get_logger
from callsync.telephony.config import TelephonyConfig
from callsync.telephony.interface import (
    CallCreateRequest,
    CallCreateResponse,
    ProviderError,
    ProviderGateway,
    ProviderNotFoundError,
    ProviderPhoneNumber,
)

logger = get_logger(__name__)


class TelnyxGateway(ProviderGateway):
    """ProviderGateway implementation for the Telnyx call-control API."""

    def __init__(
        self,
        config: TelephonyConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize Telnyx gateway.

        Args:
            config: Telephony configuration. If None, loads from environment.
            http_client: Optional pre-built client (tests inject one backed by
                ``httpx.MockTransport``).
        """
        self._config = config or TelephonyConfig()
        self._client = http_client
        self._owns_client = http_client is None

    def _get_api_url(self) -> str:
        return self._config.telnyx_api_base_url.rstrip("/")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._get_api_url(),
                headers={
                    "Authorization": f"Bearer {self._config.telnyx_api_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=httpx.Timeout(self._config.request_timeout_seconds),
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            ProviderNotFoundError: On HTTP 404.
            ProviderError: On any other non-2xx status or transport failure.
        """
        client = self._get_client()
        try:
            response = await client.request(method, path, json=json, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error_data: dict[str, Any] = {}
            try:
                error_data = e.response.json()
            except ValueError:
                error_data = {"body": e.response.text}

            errors = error_data.get("errors") or [{}]
            first = errors[0] if isinstance(errors, list) and errors else {}
            status_code = e.response.status_code

            logger.error(
                "Telnyx API error",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": status_code,
                    "error": error_data,
                },
            )
            error_cls = ProviderNotFoundError if status_code == 404 else ProviderError
            raise error_cls(
                message=f"Telnyx API error: {status_code}",
                status_code=status_code,
                error_code=str(first.get("code", "unknown")),
                provider_response=error_data,
            ) from e
        except httpx.RequestError as e:
            logger.error(
                "Telnyx request failed",
                extra={"method": method, "path": path, "error": str(e)},
            )
            raise ProviderError(
                message=f"Telnyx request failed: {e}",
                error_code="HTTP_ERROR",
            ) from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                message="Telnyx returned a non-JSON body",
                status_code=response.status_code,
                error_code="INVALID_RESPONSE",
            ) from e

    async def _call_action(
        self,
        call_control_id: str,
        action: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger.info(
            "Sending Telnyx call action",
            extra={"call_control_id": call_control_id, "action": action},
        )
        path = f"/calls/{quote(call_control_id, safe='')}/actions/{action}"
        return await self._request("POST", path, json=body or {})

    async def create_call(self, request: CallCreateRequest) -> CallCreateResponse:
        """Place an outbound call.

        Args:
            request: Call creation request.

        Returns:
            Identifiers the provider assigned to the new call.

        Raises:
            ProviderError: If call creation fails.
        """
        body: dict[str, Any] = {
            "connection_id": request.connection_id,
            "to": request.to,
            "from": request.from_number,
            "timeout_secs": request.timeout_secs,
        }
        if request.webhook_url:
            body["webhook_url"] = request.webhook_url

        logger.info(
            "Creating Telnyx call",
            extra={"to": request.to, "from": request.from_number},
        )
        payload = await self._request("POST", "/calls", json=body)
        data = payload.get("data") or {}

        call_control_id = data.get("call_control_id")
        call_leg_id = data.get("call_leg_id")
        if not call_control_id and not call_leg_id:
            raise ProviderError(
                message="Telnyx call creation returned no call identifiers",
                error_code="INVALID_RESPONSE",
                provider_response=payload,
            )

        return CallCreateResponse(
            call_control_id=call_control_id,
            call_leg_id=call_leg_id,
            call_session_id=data.get("call_session_id"),
            raw_response=payload,
        )

    async def answer_call(self, call_control_id: str) -> None:
        await self._call_action(call_control_id, "answer")

    async def hangup_call(self, call_control_id: str) -> None:
        await self._call_action(call_control_id, "hangup")

    async def reject_call(self, call_control_id: str, cause: str = "CALL_REJECTED") -> None:
        await self._call_action(call_control_id, "reject", {"cause": cause})

    async def send_dtmf(self, call_control_id: str, digits: str) -> None:
        await self._call_action(call_control_id, "send_dtmf", {"digits": digits})

    async def connect_webrtc(self, call_control_id: str) -> None:
        await self._call_action(call_control_id, "connect_webrtc")

    async def find_phone_number(self, phone_number: str) -> ProviderPhoneNumber | None:
        """Look up a number with ``filter[phone_number]``.

        Returns:
            The first match, or None when the provider has no such number.
        """
        payload = await self._request(
            "GET",
            "/phone_numbers",
            params={"filter[phone_number]": phone_number},
        )
        items = payload.get("data") or []
        if not items:
            return None
        return _to_phone_number(items[0])

    async def assign_connection(
        self,
        provider_number_id: str,
        connection_id: str,
    ) -> ProviderPhoneNumber:
        payload = await self._request(
            "PATCH",
            f"/phone_numbers/{quote(provider_number_id, safe='')}",
            json={"connection_id": connection_id},
        )
        return _to_phone_number(payload.get("data") or {})


def _to_phone_number(item: dict[str, Any]) -> ProviderPhoneNumber:
    return ProviderPhoneNumber(
        id=str(item.get("id", "")),
        phone_number=str(item.get("phone_number", "")),
        connection_id=item.get("connection_id") or None,
        raw_response=item,
    )
