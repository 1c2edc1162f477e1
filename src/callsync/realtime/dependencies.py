"""FastAPI dependency resolving the application's push hub."""

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from callsync.realtime.hub import RealtimePushHub


def get_push_hub(connection: HTTPConnection) -> RealtimePushHub:
    """Return the hub created by the application lifespan.

    Works for both HTTP requests and WebSocket connections.
    """
    hub = getattr(connection.app.state, "push_hub", None)
    if hub is None:
        raise RuntimeError("RealtimePushHub is not configured on app.state.push_hub")
    return hub


PushHubDep = Annotated[RealtimePushHub, Depends(get_push_hub)]
