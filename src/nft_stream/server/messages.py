"""Wire envelopes exchanged with subscribers.

Every message is a JSON object with a ``type`` field.
"""

from __future__ import annotations

import json
import time
from typing import Any

# Server -> client
CONNECTION_ESTABLISHED = "connection_established"
PONG = "pong"
NFT_EVENT = "nft_event"
FETCHING_EVENTS = "fetching_events"
FILTERS_UPDATED = "filters_updated"
ERROR = "error"

# Client -> server
PING = "ping"
GET_LATEST_EVENTS = "get_latest_events"
UPDATE_FILTERS = "update_filters"

INVALID_FORMAT_MESSAGE = "Invalid message format. Expected JSON."
WELCOME_MESSAGE = "Connected to NFT Event Stream server"


def now_ms() -> int:
    return int(time.time() * 1000)


def encode(message: dict[str, Any] | str) -> str:
    """Serialize an envelope; strings are assumed to be pre-encoded."""
    if isinstance(message, str):
        return message
    return json.dumps(message, separators=(",", ":"), default=str)


def connection_established(
    client_id: str, collection: str, poll_interval: int,
) -> dict[str, Any]:
    return {
        "type": CONNECTION_ESTABLISHED,
        "clientId": client_id,
        "message": WELCOME_MESSAGE,
        "collection": collection,
        "pollInterval": poll_interval,
        "timestamp": now_ms(),
    }


def pong(timestamp: Any) -> dict[str, Any]:
    return {"type": PONG, "timestamp": timestamp}


def nft_event(data: dict[str, Any]) -> dict[str, Any]:
    return {"type": NFT_EVENT, "data": data}


def fetching_events() -> dict[str, Any]:
    return {"type": FETCHING_EVENTS, "timestamp": now_ms()}


def filters_updated(event_types: list[str], marketplaces: list[str]) -> dict[str, Any]:
    return {
        "type": FILTERS_UPDATED,
        "eventTypes": event_types,
        "marketplaces": marketplaces,
        "timestamp": now_ms(),
    }


def error(message: str = INVALID_FORMAT_MESSAGE) -> dict[str, Any]:
    return {"type": ERROR, "message": message}
