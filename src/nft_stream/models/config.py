"""Configuration models for the stream server."""

from __future__ import annotations

from dataclasses import dataclass, field

# Kumo NFT collection on Sui
KUMO_COLLECTION = (
    "0x57191e5e5c41166b90a4b7811ad3ec7963708aa537a8438c1761a5d33e2155fd::kumo::Kumo"
)

DEFAULT_EVENT_TYPES = ["List"]
DEFAULT_MARKETPLACES = ["TradePort"]


@dataclass
class PollConfig:
    """Runtime polling parameters. Owned by the Poller."""

    interval_ms: int = 30_000
    collection_id: str = KUMO_COLLECTION
    credential: str = ""  # upstream x-api-key
    event_types: list[str] = field(default_factory=lambda: list(DEFAULT_EVENT_TYPES))
    marketplaces: list[str] = field(default_factory=lambda: list(DEFAULT_MARKETPLACES))

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000


@dataclass
class StreamConfig:
    """Complete server configuration."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    # Poller
    poll_interval: int = 30_000  # milliseconds
    dedup_capacity: int = 1000
    event_types: list[str] = field(default_factory=lambda: list(DEFAULT_EVENT_TYPES))
    marketplaces: list[str] = field(default_factory=lambda: list(DEFAULT_MARKETPLACES))

    # Upstream (Blockberry)
    base_url: str = "https://api.blockberry.one"
    collection: str = KUMO_COLLECTION
    api_key: str = ""  # loaded from env var NFT_STREAM_API_KEY / X_API_KEY
    page_size: int = 20
    request_timeout: float = 10.0  # seconds

    def poll_config(self) -> PollConfig:
        return PollConfig(
            interval_ms=self.poll_interval,
            collection_id=self.collection,
            credential=self.api_key,
            event_types=list(self.event_types),
            marketplaces=list(self.marketplaces),
        )
