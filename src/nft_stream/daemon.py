"""Server daemon - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from typing import Any

from nft_stream.engine.broadcast import BroadcastHub
from nft_stream.engine.poller import Poller
from nft_stream.interfaces.source import EventSource
from nft_stream.models.config import StreamConfig
from nft_stream.models.records import Connection, StatusSnapshot
from nft_stream.server import messages
from nft_stream.server.app import StreamServer
from nft_stream.server.protocol import ControlProtocolHandler
from nft_stream.server.registry import ConnectionRegistry
from nft_stream.upstream.client import BlockberryEventSource

log = logging.getLogger(__name__)


class StreamDaemon:
    """NFT marketplace event relay.

    Polls the upstream provider, deduplicates by txHash and broadcasts new
    events to every connected WebSocket subscriber.
    """

    def __init__(self, cfg: StreamConfig, source: EventSource | None = None) -> None:
        self._cfg = cfg
        self._start_time = time.monotonic()
        self._stopped = asyncio.Event()

        # Core components
        if source is None:
            source = BlockberryEventSource(cfg.base_url, cfg.page_size, cfg.request_timeout)
        self.source = source
        self.registry = ConnectionRegistry(welcome=self._welcome)
        self.hub = BroadcastHub(self.registry)
        self.poller = Poller(
            self.source, self.hub, cfg.poll_config(), dedup_capacity=cfg.dedup_capacity,
        )
        self.handler = ControlProtocolHandler(self.registry, self.poller)
        self.server = StreamServer(self.registry, self.handler, self.status)

    def _welcome(self, connection: Connection) -> dict[str, Any]:
        config = self.poller.config
        return messages.connection_established(
            connection.id, config.collection_id, config.interval_ms,
        )

    def status(self) -> StatusSnapshot:
        config = self.poller.config
        return StatusSnapshot(
            clients=len(self.registry),
            poll_state=self.poller.state.value,
            poll_interval=config.interval_ms,
            collection=config.collection_id,
            event_types=list(config.event_types),
            marketplaces=list(config.marketplaces),
            dedup_size=len(self.poller.dedup),
            cycles_completed=self.poller.cycles_completed,
            fetch_failures=self.poller.fetch_failures,
            events_published=self.poller.events_published,
            last_poll_at=self.poller.last_poll_at,
            uptime_seconds=int(time.monotonic() - self._start_time),
        )

    async def start(self) -> None:
        """Start listening, begin polling and run until stop() is called."""
        log.info("Starting nft_stream server")
        log.info("  Collection: %s", self._cfg.collection)
        log.info("  Upstream: %s", self._cfg.base_url)
        log.info("  Poll interval: %dms", self._cfg.poll_interval)
        log.info("  Filters: eventTypes=%s marketplaces=%s",
                 self._cfg.event_types, self._cfg.marketplaces)

        await self.server.start(self._cfg.host, self._cfg.port)
        self.poller.start()

        try:
            await self._stopped.wait()
        finally:
            await self.shutdown()

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._stopped.set()

    async def shutdown(self) -> None:
        """Stop polling, close every subscriber and the listener."""
        self.poller.stop()
        await self.registry.shutdown()
        # A fetch already on the wire finishes within the request timeout
        await self.poller.wait_idle()
        # Subscribers that connected while the cycle drained
        await self.registry.shutdown()
        await self.server.stop()
        log.info("NFT Event Stream server shut down")


async def run_daemon(cfg: StreamConfig) -> None:
    """Entry point for running the daemon."""
    daemon = StreamDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
