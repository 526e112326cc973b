"""Protocol interfaces for nft_stream components."""

from nft_stream.interfaces.source import EventSource
from nft_stream.interfaces.transport import Transport

__all__ = ["EventSource", "Transport"]
