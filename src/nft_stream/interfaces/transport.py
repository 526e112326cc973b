"""Transport protocol - the send side of a subscriber connection.

aiohttp's ``web.WebSocketResponse`` satisfies this protocol as-is.
"""

from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    """A bidirectional message connection to one subscriber."""

    @property
    def closed(self) -> bool:
        """True once the connection is closing or closed."""
        ...

    async def send_str(self, data: str) -> None:
        """Send one text frame. Raises ConnectionError if the peer is gone."""
        ...

    async def close(self) -> bool:
        """Close the connection."""
        ...
