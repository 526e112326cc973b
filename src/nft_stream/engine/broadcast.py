"""Broadcast hub - wraps event records in the wire envelope and fans them out."""

from __future__ import annotations

import logging

from nft_stream.models.events import EventRecord
from nft_stream.server import messages
from nft_stream.server.registry import ConnectionRegistry

log = logging.getLogger(__name__)


class BroadcastHub:
    """Stateless publisher of ``nft_event`` envelopes."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def publish(self, record: EventRecord) -> int:
        """Broadcast one record. Returns the number of subscribers reached."""
        sent = await self._registry.broadcast(messages.nft_event(record.payload()))
        log.debug("Published %s (%s) to %d clients", record.tx_hash, record.event_type, sent)
        return sent
