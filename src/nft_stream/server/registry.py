"""Connection registry - tracks live subscriber connections."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from nft_stream.interfaces.transport import Transport
from nft_stream.models.records import Connection
from nft_stream.server import messages

log = logging.getLogger(__name__)

WelcomeFactory = Callable[[Connection], dict[str, Any]]

# What a transport raises when its peer has gone away mid-send
_TRANSPORT_ERRORS = (ConnectionError, RuntimeError)


class ConnectionRegistry:
    """Owns every live Connection, keyed by its id.

    All access happens on the event loop. Broadcasts iterate over a snapshot,
    so connections may join or leave while one is in progress. Each send is
    awaited before the next, which keeps per-connection delivery in call
    order.
    """

    def __init__(self, welcome: WelcomeFactory | None = None) -> None:
        self._connections: dict[str, Connection] = {}
        self._welcome = welcome

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    # ── Lifecycle ─────────────────────────────────────────

    async def connect(self, transport: Transport) -> Connection:
        """Mint an id for a freshly handshaken transport and register it."""
        connection = Connection(
            id=str(uuid.uuid4()),
            transport=transport,
            connected_at=datetime.now(timezone.utc),
        )
        await self.add(connection)
        return connection

    async def add(self, connection: Connection) -> None:
        """Register ``connection`` and greet it before returning."""
        if connection.id in self._connections:
            raise ValueError(f"connection {connection.id} already registered")
        self._connections[connection.id] = connection
        log.info("Client connected: %s (%d total)", connection.id, len(self._connections))

        if self._welcome is not None:
            await self.send_to(connection.id, self._welcome(connection))

    def remove(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            log.info(
                "Client disconnected: %s (%d remaining)",
                connection_id, len(self._connections),
            )

    def list_all(self) -> list[Connection]:
        return list(self._connections.values())

    async def shutdown(self) -> None:
        """Close every transport and empty the registry. Safe to call twice."""
        connections = self.list_all()
        self._connections.clear()
        results = await asyncio.gather(
            *(c.transport.close() for c in connections), return_exceptions=True,
        )
        for connection, result in zip(connections, results):
            if isinstance(result, Exception):
                log.debug("Error closing %s: %s", connection.id, result)
        if connections:
            log.info("Closed %d client connections", len(connections))

    # ── Delivery ──────────────────────────────────────────

    async def send_to(self, connection_id: str, message: dict[str, Any] | str) -> bool:
        """Send to one connection if it is open. Returns whether a send was attempted."""
        connection = self._connections.get(connection_id)
        if connection is None or connection.transport.closed:
            return False
        await self._deliver(connection, messages.encode(message))
        return True

    async def broadcast(self, message: dict[str, Any] | str) -> int:
        """Send to every open connection. Returns the count of successful sends."""
        data = messages.encode(message)
        sent = 0
        for connection in self.list_all():
            # Re-check on every step: an earlier send may have yielded
            # while this connection closed or was removed.
            if connection.id not in self._connections or connection.transport.closed:
                continue
            if await self._deliver(connection, data):
                sent += 1

        if sent > 0:
            log.info("Broadcasted event to %d clients", sent)
        return sent

    async def _deliver(self, connection: Connection, data: str) -> bool:
        try:
            await connection.transport.send_str(data)
        except _TRANSPORT_ERRORS as exc:
            # Dropped; the server removes the connection when its reader sees the close.
            log.debug("Send to %s failed: %s", connection.id, exc)
            return False
        return True
