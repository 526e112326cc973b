"""nft_stream - real-time relay of NFT marketplace events over WebSockets."""

__version__ = "0.1.0"
