"""Synthetic upstream event factories for testing."""

from __future__ import annotations

from nft_stream.models.events import EventRecord


def make_upstream_event(
    tx_hash: str = "9xTestTxHash111",
    event_type: str = "List",
    nft_name: str | None = "Kumo #1234",
    latest_price: float | None = 12.5,
    seller_name: str | None = None,
    seller_address: str | None = "0xseller000000000000000000000000000000000000000000000000000000abcd",
    marketplace: str | None = "TradePort",
    nft_img: str | None = "https://img.example.com/kumo/1234.png",
) -> dict:
    """One entry of the upstream ``content`` array."""
    return {
        "txHash": tx_hash,
        "eventType": event_type,
        "nftName": nft_name,
        "latestPrice": latest_price,
        "sellerName": seller_name,
        "sellerAddress": seller_address,
        "marketplace": marketplace,
        "nftImg": nft_img,
    }


def make_event_record(tx_hash: str = "9xTestTxHash111", **kwargs) -> EventRecord:
    return EventRecord.from_upstream(make_upstream_event(tx_hash=tx_hash, **kwargs))


def make_page(*tx_hashes: str) -> dict:
    """A full upstream response body carrying the given hashes, in order."""
    return {
        "content": [make_upstream_event(tx_hash=h) for h in tx_hashes],
        "totalElements": len(tx_hashes),
        "page": 0,
    }
