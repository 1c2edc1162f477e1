"""
Tests for the push WebSocket endpoint.
"""

import time
from collections.abc import Callable
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from callsync.auth.models import User
from callsync.main import create_app
from callsync.realtime.hub import POLICY_VIOLATION_CLOSE, RealtimePushHub


def _wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def ws_app(push_hub: RealtimePushHub) -> FastAPI:
    application = create_app()
    application.state.push_hub = push_hub
    return application


@pytest.fixture
def dashboard_user() -> User:
    return User(id=uuid4(), email="ws@example.com", name="ws")


class TestPushSocket:
    def test_valid_token_registers_and_unregisters(
        self,
        ws_app: FastAPI,
        push_hub: RealtimePushHub,
        token_for,
        dashboard_user: User,
    ) -> None:
        client = TestClient(ws_app)

        with client.websocket_connect(f"/ws?token={token_for(dashboard_user)}") as websocket:
            assert _wait_for(lambda: push_hub.stats()["connections"] == 1)
            connection = push_hub.connections_for(dashboard_user.id)[0]
            connection.is_alive = False

            websocket.send_text("pong")

            assert _wait_for(lambda: connection.is_alive)

        assert _wait_for(lambda: push_hub.stats() == {"users": 0, "connections": 0})

    def test_binary_frame_counts_as_keepalive(
        self,
        ws_app: FastAPI,
        push_hub: RealtimePushHub,
        token_for,
        dashboard_user: User,
    ) -> None:
        client = TestClient(ws_app)

        with client.websocket_connect(f"/ws?token={token_for(dashboard_user)}") as websocket:
            assert _wait_for(lambda: push_hub.stats()["connections"] == 1)
            connection = push_hub.connections_for(dashboard_user.id)[0]
            connection.is_alive = False

            websocket.send_bytes(b"ping")
            assert _wait_for(lambda: connection.is_alive)

            websocket.send_json({"type": "anything"})
            assert push_hub.stats()["connections"] == 1

    def test_missing_token_is_rejected(self, ws_app: FastAPI, push_hub: RealtimePushHub) -> None:
        client = TestClient(ws_app)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws"):
                pass

        assert exc_info.value.code == POLICY_VIOLATION_CLOSE
        assert push_hub.stats()["connections"] == 0

    def test_invalid_token_is_rejected(
        self,
        ws_app: FastAPI,
        push_hub: RealtimePushHub,
        token_for,
    ) -> None:
        client = TestClient(ws_app)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws?token=forged"):
                pass

        assert exc_info.value.code == POLICY_VIOLATION_CLOSE
        assert push_hub.stats()["connections"] == 0
