"""Internal record types for connections and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from nft_stream.models.events import EventRecord

if TYPE_CHECKING:
    from nft_stream.interfaces.transport import Transport


class PollState(str, Enum):
    """Poller single-flight state."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"


@dataclass
class FetchResult:
    """Result of one upstream fetch. ``error`` carries the FetchError cause."""

    success: bool
    events: list[EventRecord] = field(default_factory=list)
    error: str | None = None
    status_code: int | None = None
    duration_ms: int = 0


@dataclass
class Connection:
    """A live subscriber connection as held by the registry."""

    id: str
    transport: "Transport"
    connected_at: datetime


@dataclass
class StatusSnapshot:
    """Point-in-time view served by the /status endpoint."""

    clients: int
    poll_state: str
    poll_interval: int
    collection: str
    event_types: list[str]
    marketplaces: list[str]
    dedup_size: int
    cycles_completed: int
    fetch_failures: int
    events_published: int
    last_poll_at: str | None
    uptime_seconds: int

    def to_dict(self) -> dict:
        return {
            "clients": self.clients,
            "pollState": self.poll_state,
            "pollInterval": self.poll_interval,
            "collection": self.collection,
            "eventTypes": self.event_types,
            "marketplaces": self.marketplaces,
            "dedupSize": self.dedup_size,
            "cyclesCompleted": self.cycles_completed,
            "fetchFailures": self.fetch_failures,
            "eventsPublished": self.events_published,
            "lastPollAt": self.last_poll_at,
            "uptimeSeconds": self.uptime_seconds,
        }
