"""
WebSocket endpoint for dashboard push messages.

Clients connect to ``/ws?token=<access token>``. The token identifies the
user whose call events the connection receives.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket

from callsync.auth.middleware import authenticate_token
from callsync.config import Settings, get_settings
from callsync.realtime.dependencies import PushHubDep
from callsync.realtime.hub import POLICY_VIOLATION_CLOSE
from callsync.shared.exceptions import AuthenticationError
from callsync.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def push_socket(
    websocket: WebSocket,
    hub: PushHubDep,
    settings: Annotated[Settings, Depends(get_settings)],
    token: Annotated[str | None, Query(description="Access token")] = None,
) -> None:
    """Register the connection with the hub until the client goes away.

    Every message the client sends counts as a liveness answer; its content
    is otherwise ignored.
    """
    if not token:
        logger.warning("Push connection without token rejected")
        await websocket.close(code=POLICY_VIOLATION_CLOSE)
        return

    try:
        user = authenticate_token(token, settings)
    except AuthenticationError as e:
        logger.warning("Push connection rejected", extra={"code": e.code})
        await websocket.close(code=POLICY_VIOLATION_CLOSE)
        return

    await websocket.accept()
    connection = hub.register(user.id, websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(
                    "Push client disconnected",
                    extra={
                        "user_id": connection.user_id,
                        "connection_id": connection.connection_id,
                        "code": message.get("code"),
                    },
                )
                break
            # text or binary, the content is irrelevant
            hub.mark_alive(connection)
    finally:
        hub.unregister(connection)
