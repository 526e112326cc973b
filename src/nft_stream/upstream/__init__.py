"""Upstream event provider clients."""

from nft_stream.upstream.client import BlockberryEventSource

__all__ = ["BlockberryEventSource"]
