"""
Real-time push hub.

Keeps every open dashboard WebSocket grouped by user id and fans push
messages out to them. A user may hold several connections (tabs, devices).

Liveness uses a two-strike rule: each probe cycle closes connections that
did not answer the previous probe, then marks the survivors as unanswered
and probes them again. Any client message counts as an answer.

Delivery is best effort. A failed send is logged and skipped; it never
aborts delivery to the remaining connections. Clients that miss messages
reconcile by re-fetching call logs on reconnect.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID, uuid4

import anyio

from callsync.realtime.messages import PushMessage, PushType
from callsync.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PING_INTERVAL_SECONDS = 30.0
POLICY_VIOLATION_CLOSE = 1008
GOING_AWAY_CLOSE = 1001

_PING = PushMessage(type=PushType.PING)


class PushTransport(Protocol):
    """The part of a WebSocket the hub needs (Starlette's WebSocket fits)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


@dataclass(eq=False)
class PushConnection:
    """One registered client connection."""

    user_id: str
    transport: PushTransport
    connection_id: str = field(default_factory=lambda: uuid4().hex)
    is_alive: bool = True
    is_open: bool = True


def _user_key(user_id: UUID | str) -> str:
    return str(user_id)


def _wire(message: PushMessage | dict[str, Any]) -> str:
    if isinstance(message, PushMessage):
        return message.to_wire()
    return PushMessage.model_validate(message).to_wire()


class RealtimePushHub:
    """Registry of open push connections keyed by user id.

    The hub is an ordinary object owned by the application (created in the
    lifespan and stored on ``app.state``) and injected where needed.
    """

    def __init__(self, ping_interval_seconds: float = DEFAULT_PING_INTERVAL_SECONDS) -> None:
        self._connections: dict[str, set[PushConnection]] = {}
        self._ping_interval = ping_interval_seconds
        self._liveness_task: asyncio.Task[None] | None = None

    # Registry

    def register(self, user_id: UUID | str, transport: PushTransport) -> PushConnection:
        """Add a connection to the user's set (created on first use)."""
        connection = PushConnection(user_id=_user_key(user_id), transport=transport)
        self._connections.setdefault(connection.user_id, set()).add(connection)
        logger.info(
            "Push connection registered",
            extra={
                "user_id": connection.user_id,
                "connection_id": connection.connection_id,
                "user_connections": len(self._connections[connection.user_id]),
            },
        )
        return connection

    def unregister(self, connection: PushConnection) -> None:
        """Remove a connection; drops the user's entry once it is empty."""
        connection.is_open = False
        connections = self._connections.get(connection.user_id)
        if connections is None or connection not in connections:
            return
        connections.discard(connection)
        if not connections:
            del self._connections[connection.user_id]
        logger.info(
            "Push connection unregistered",
            extra={
                "user_id": connection.user_id,
                "connection_id": connection.connection_id,
            },
        )

    def mark_alive(self, connection: PushConnection) -> None:
        connection.is_alive = True

    def connections_for(self, user_id: UUID | str) -> list[PushConnection]:
        return list(self._connections.get(_user_key(user_id), ()))

    def _all_connections(self) -> list[PushConnection]:
        return [conn for conns in list(self._connections.values()) for conn in list(conns)]

    def stats(self) -> dict[str, int]:
        return {
            "users": len(self._connections),
            "connections": sum(len(conns) for conns in self._connections.values()),
        }

    # Delivery

    async def _send_one(self, connection: PushConnection, text: str) -> bool:
        if not connection.is_open:
            return False
        try:
            await connection.transport.send_text(text)
        except Exception as e:
            logger.warning(
                "Push send failed",
                extra={
                    "user_id": connection.user_id,
                    "connection_id": connection.connection_id,
                    "error": str(e),
                },
            )
            return False
        return True

    async def _deliver(self, connections: Iterable[PushConnection], text: str) -> int:
        delivered = 0

        async def _send(connection: PushConnection) -> None:
            nonlocal delivered
            if await self._send_one(connection, text):
                delivered += 1

        async with anyio.create_task_group() as tg:
            for connection in connections:
                tg.start_soon(_send, connection)
        return delivered

    async def send_to_user(
        self,
        user_id: UUID | str,
        message: PushMessage | dict[str, Any],
    ) -> int:
        """Deliver ``message`` to every open connection of one user.

        Returns:
            Number of connections the message was written to. Zero when the
            user has no connections.
        """
        connections = self.connections_for(user_id)
        if not connections:
            return 0
        return await self._deliver(connections, _wire(message))

    async def broadcast(self, message: PushMessage | dict[str, Any]) -> int:
        """Deliver ``message`` to every open connection of every user."""
        return await self._deliver(self._all_connections(), _wire(message))

    async def broadcast_except_user(
        self,
        excluded_user_id: UUID | str,
        message: PushMessage | dict[str, Any],
    ) -> int:
        """Deliver ``message`` to everyone except one user's connections."""
        excluded = _user_key(excluded_user_id)
        connections = [c for c in self._all_connections() if c.user_id != excluded]
        return await self._deliver(connections, _wire(message))

    # Liveness

    async def _terminate(self, connection: PushConnection) -> None:
        self.unregister(connection)
        logger.info(
            "Pruning unresponsive push connection",
            extra={
                "user_id": connection.user_id,
                "connection_id": connection.connection_id,
            },
        )
        try:
            await connection.transport.close(code=GOING_AWAY_CLOSE)
        except Exception as e:
            logger.debug(
                "Closing pruned push connection failed",
                extra={"connection_id": connection.connection_id, "error": str(e)},
            )

    async def probe_once(self) -> None:
        """Run one liveness cycle over every registered connection."""
        ping = _PING.to_wire()

        async def _probe(connection: PushConnection) -> None:
            if not connection.is_alive:
                await self._terminate(connection)
                return
            connection.is_alive = False
            await self._send_one(connection, ping)

        async with anyio.create_task_group() as tg:
            for connection in self._all_connections():
                tg.start_soon(_probe, connection)

    async def _run_liveness(self) -> None:
        while True:
            await anyio.sleep(self._ping_interval)
            try:
                await self.probe_once()
            except Exception:
                logger.exception("Push liveness cycle failed")

    def start(self) -> None:
        """Start the periodic liveness loop (idempotent)."""
        if self._liveness_task is not None and not self._liveness_task.done():
            return
        self._liveness_task = asyncio.create_task(self._run_liveness())
        logger.info(
            "Push liveness loop started",
            extra={"interval_seconds": self._ping_interval},
        )

    async def stop(self) -> None:
        """Stop the liveness loop and close every connection."""
        task = self._liveness_task
        self._liveness_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        for connection in self._all_connections():
            self.unregister(connection)
            try:
                await connection.transport.close(code=GOING_AWAY_CLOSE)
            except Exception as e:
                logger.debug(
                    "Closing push connection on shutdown failed",
                    extra={"connection_id": connection.connection_id, "error": str(e)},
                )
        logger.info("Push hub stopped")
