"""Single-flight poller - fetch, dedup and broadcast on a timer or on demand."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import fields, replace
from datetime import datetime, timezone

from nft_stream.engine.broadcast import BroadcastHub
from nft_stream.engine.dedup import DedupWindow
from nft_stream.interfaces.source import EventSource
from nft_stream.models.config import PollConfig
from nft_stream.models.records import PollState
from nft_stream.server.messages import now_ms

log = logging.getLogger(__name__)

_CONFIG_FIELDS = frozenset(f.name for f in fields(PollConfig))


class Poller:
    """Polls the event source and forwards newly seen events to the hub.

    State machine: IDLE -> (timer | trigger_now) -> IN_FLIGHT -> IDLE.
    The state flips to IN_FLIGHT synchronously, before the cycle task is
    scheduled, so any trigger that arrives while a cycle runs is a no-op.
    That bounds outbound requests to one at a time and keeps two cycles
    from racing on the dedup window.

    Each cycle:
    1. Fetches the latest events with a snapshot of the current PollConfig
    2. Filters them through the dedup window and admits the new ids
    3. Publishes each new event, in upstream order, one at a time

    A failed fetch is logged and the cycle ends; the next tick retries.
    """

    def __init__(
        self,
        source: EventSource,
        hub: BroadcastHub,
        config: PollConfig | None = None,
        dedup_capacity: int = 1000,
    ) -> None:
        self._source = source
        self._hub = hub
        self._config = config or PollConfig()
        self._validate(self._config)
        self._dedup = DedupWindow(dedup_capacity)
        self._state = PollState.IDLE
        self._timer_task: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None
        self._rerun = False

        self.cycles_completed = 0
        self.fetch_failures = 0
        self.events_published = 0
        self.last_poll_at: str | None = None

    # ── Accessors ─────────────────────────────────────────

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def config(self) -> PollConfig:
        return self._config

    @property
    def dedup(self) -> DedupWindow:
        return self._dedup

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    # ── Lifecycle ─────────────────────────────────────────

    def start(self, config: PollConfig | None = None) -> None:
        """Run one cycle now, then every ``interval_ms``. Needs a running loop."""
        if config is not None:
            self._validate(config)
            self._config = config
        self._restart_timer()
        self.trigger_now()
        log.info("Event polling started (interval: %dms)", self._config.interval_ms)

    def stop(self) -> None:
        """Cancel the recurring timer. An in-flight cycle is left to finish."""
        self._rerun = False
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
            log.info("Event polling stopped")

    async def wait_idle(self) -> None:
        """Wait for the in-flight cycle, and any follow-up it queued, to complete."""
        while (task := self._cycle_task) is not None and not task.done():
            await asyncio.wait({task})

    def trigger_now(self) -> bool:
        """Start a cycle unless one is already running. Returns True if started."""
        if self._state is PollState.IN_FLIGHT:
            log.debug("Poll already in flight, trigger coalesced")
            return False
        self._state = PollState.IN_FLIGHT
        self._cycle_task = asyncio.create_task(self._run_cycle())
        return True

    def update_config(self, **changes) -> PollConfig:
        """Merge ``changes`` into the PollConfig, reset the timer and poll now.

        The new values apply from the next cycle; a cycle already in flight
        keeps the snapshot it started with, and one follow-up cycle runs as
        soon as it finishes.
        """
        unknown = set(changes) - _CONFIG_FIELDS
        if unknown:
            raise TypeError(f"unknown PollConfig fields: {', '.join(sorted(unknown))}")

        updated = replace(self._config, **changes)
        self._validate(updated)
        self._config = updated
        log.info(
            "Poll config updated: eventTypes=%s marketplaces=%s interval=%dms",
            updated.event_types, updated.marketplaces, updated.interval_ms,
        )

        if self.running:
            self._restart_timer()
        if not self.trigger_now():
            self._rerun = True
        return updated

    # ── Internals ─────────────────────────────────────────

    @staticmethod
    def _validate(config: PollConfig) -> None:
        if config.interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {config.interval_ms}")

    def _restart_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
        self._timer_task = asyncio.create_task(self._timer_loop())

    async def _timer_loop(self) -> None:
        """Fire trigger_now() every interval until cancelled."""
        while True:
            try:
                await asyncio.sleep(self._config.interval_seconds)
            except asyncio.CancelledError:
                break
            self.trigger_now()

    async def _run_cycle(self) -> None:
        try:
            await self._poll_once()
        except asyncio.CancelledError:
            log.info("Poll cycle cancelled")
            raise
        except Exception as exc:
            log.error("Error during event polling: %s", exc, exc_info=True)
        finally:
            self.cycles_completed += 1
            self.last_poll_at = datetime.now(timezone.utc).isoformat()
            self._state = PollState.IDLE

        if self._rerun:
            self._rerun = False
            log.debug("Config changed during the last poll, polling again")
            self.trigger_now()

    async def _poll_once(self) -> None:
        config = replace(
            self._config,
            event_types=list(self._config.event_types),
            marketplaces=list(self._config.marketplaces),
        )
        result = await self._source.fetch(config)

        if not result.success:
            self.fetch_failures += 1
            log.warning("Failed to fetch NFT events: %s", result.error)
            return

        accepted = set(self._dedup.filter_new(event.tx_hash for event in result.events))
        if not accepted:
            log.debug("No new events found")
            return

        log.info("Found %d new events", len(accepted))
        for event in result.events:
            if event.tx_hash not in accepted:
                continue
            # Publish a repeated hash in the same batch only once
            accepted.discard(event.tx_hash)
            await self._hub.publish(event.observed(now_ms()))
            self.events_published += 1
