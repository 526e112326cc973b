"""aiohttp application - WebSocket endpoint and status route."""

from __future__ import annotations

import logging
from typing import Callable

from aiohttp import WSMsgType, web

from nft_stream.models.records import StatusSnapshot
from nft_stream.server.protocol import ControlProtocolHandler
from nft_stream.server.registry import ConnectionRegistry

log = logging.getLogger(__name__)


class StreamServer:
    """Accepts subscriber WebSockets and feeds their frames to the protocol handler.

    One reader task per connection (aiohttp's request handler). The
    connection is registered after the handshake and removed when the
    reader loop ends, whatever the reason.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        handler: ControlProtocolHandler,
        status: Callable[[], StatusSnapshot],
        heartbeat: float | None = None,
    ) -> None:
        self._registry = registry
        self._handler = handler
        self._status = status
        self._heartbeat = heartbeat
        self._runner: web.AppRunner | None = None

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_ws)
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_get("/status", self._handle_status)
        return app

    @property
    def addresses(self) -> list:
        """Bound socket addresses (useful when listening on port 0)."""
        return list(self._runner.addresses) if self._runner else []

    async def start(self, host: str, port: int) -> None:
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        log.info("NFT Event Stream server is running on %s:%d", host, port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    # ── Handlers ──────────────────────────────────────────

    async def _handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(self._status().to_dict())

    async def _handle_ws(self, request: web.Request) -> web.StreamResponse:
        ws = web.WebSocketResponse(heartbeat=self._heartbeat)
        await ws.prepare(request)

        connection = await self._registry.connect(ws)
        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    try:
                        await self._handler.handle(connection.id, msg.data)
                    except Exception as exc:
                        log.error(
                            "Error handling message from %s: %s",
                            connection.id, exc, exc_info=True,
                        )
                elif msg.type == WSMsgType.ERROR:
                    log.warning("Connection %s error: %s", connection.id, ws.exception())
        finally:
            self._registry.remove(connection.id)

        return ws
