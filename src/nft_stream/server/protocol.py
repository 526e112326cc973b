"""Control protocol - interprets inbound subscriber messages."""

from __future__ import annotations

import json
import logging
from typing import Any

from nft_stream.engine.poller import Poller
from nft_stream.server import messages
from nft_stream.server.registry import ConnectionRegistry

log = logging.getLogger(__name__)


class ProtocolError(ValueError):
    """A subscriber sent something that is not a valid control message."""


def parse_message(payload: str | bytes) -> dict[str, Any]:
    """Decode one inbound frame into a message object.

    Raises ProtocolError for undecodable bytes, non-JSON text or JSON that
    is not an object.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"frame is not UTF-8: {exc}") from exc
    try:
        message = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"not JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise ProtocolError(f"expected a JSON object, got {type(message).__name__}")
    return message


def _resolve_filter(value: Any, current: list[str], name: str) -> list[str]:
    """Normalize an update_filters value: str -> [str], missing -> current."""
    if value is None:
        return list(current)
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ProtocolError(f"{name} must be a string or a list of strings")


class ControlProtocolHandler:
    """Dispatches subscriber messages on their ``type`` tag.

    Replies go back through the registry; poll requests go to the Poller.
    Unknown types are ignored without a reply.
    """

    def __init__(self, registry: ConnectionRegistry, poller: Poller) -> None:
        self._registry = registry
        self._poller = poller

    async def handle(self, connection_id: str, payload: str | bytes) -> None:
        try:
            message = parse_message(payload)
        except ProtocolError as exc:
            log.warning("Error parsing message from %s: %s", connection_id, exc)
            await self._registry.send_to(connection_id, messages.error())
            return

        log.debug("Received message from %s: %s", connection_id, message)
        msg_type = message.get("type")

        if msg_type == messages.PING:
            await self._on_ping(connection_id, message)
        elif msg_type == messages.GET_LATEST_EVENTS:
            await self._on_get_latest_events(connection_id)
        elif msg_type == messages.UPDATE_FILTERS:
            await self._on_update_filters(connection_id, message)
        else:
            log.debug("Ignoring message type %r from %s", msg_type, connection_id)

    async def _on_ping(self, connection_id: str, message: dict[str, Any]) -> None:
        timestamp = message.get("timestamp")
        if timestamp is None:
            timestamp = messages.now_ms()
        await self._registry.send_to(connection_id, messages.pong(timestamp))

    async def _on_get_latest_events(self, connection_id: str) -> None:
        await self._registry.send_to(connection_id, messages.fetching_events())
        if not self._poller.trigger_now():
            log.debug("Refresh from %s joined the poll already in flight", connection_id)

    async def _on_update_filters(self, connection_id: str, message: dict[str, Any]) -> None:
        raw_types = message.get("eventTypes")
        raw_markets = message.get("marketplaces")
        if raw_types is None and raw_markets is None:
            return

        current = self._poller.config
        try:
            event_types = _resolve_filter(raw_types, current.event_types, "eventTypes")
            marketplaces = _resolve_filter(raw_markets, current.marketplaces, "marketplaces")
        except ProtocolError as exc:
            log.warning("Bad update_filters from %s: %s", connection_id, exc)
            await self._registry.send_to(connection_id, messages.error(str(exc)))
            return

        await self._registry.send_to(
            connection_id, messages.filters_updated(event_types, marketplaces),
        )
        self._poller.update_config(event_types=event_types, marketplaces=marketplaces)
