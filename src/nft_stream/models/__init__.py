"""Data models for the nft_stream server."""

from nft_stream.models.config import PollConfig, StreamConfig
from nft_stream.models.events import EventRecord
from nft_stream.models.records import Connection, FetchResult, PollState, StatusSnapshot

__all__ = [
    "PollConfig", "StreamConfig",
    "EventRecord",
    "Connection", "FetchResult", "PollState", "StatusSnapshot",
]
