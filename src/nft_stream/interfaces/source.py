"""EventSource protocol - fetches marketplace events from the upstream provider."""

from __future__ import annotations

from typing import Protocol

from nft_stream.models.config import PollConfig
from nft_stream.models.records import FetchResult


class EventSource(Protocol):
    """One request/response call against the upstream event provider."""

    async def fetch(self, config: PollConfig) -> FetchResult:
        """Fetch the latest events for ``config``. Never raises."""
        ...
