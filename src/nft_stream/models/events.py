"""Marketplace event records as returned by the upstream provider."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class EventRecord:
    """A single marketplace activity event.

    Identity is ``tx_hash``. Everything else is display payload that the
    engine passes through untouched; ``raw`` keeps the upstream object as
    received so fields we do not model still reach subscribers.
    """

    tx_hash: str
    event_type: str
    nft_name: str | None = None
    latest_price: float | None = None
    seller_name: str | None = None
    seller_address: str | None = None
    marketplace: str | None = None
    nft_img: str | None = None
    observed_at: int | None = None  # epoch ms, set when the engine admits it
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_upstream(cls, data: dict[str, Any]) -> "EventRecord":
        """Build a record from one entry of the upstream ``content`` array.

        Raises ValueError if the identity fields are missing.
        """
        tx_hash = data.get("txHash")
        if not isinstance(tx_hash, str) or not tx_hash:
            raise ValueError("event without txHash")
        if "eventType" not in data:
            raise ValueError(f"event {tx_hash} without eventType")

        price = data.get("latestPrice")
        if price is not None and not isinstance(price, (int, float)):
            try:
                price = float(price)
            except (TypeError, ValueError):
                price = None

        return cls(
            tx_hash=tx_hash,
            event_type=str(data["eventType"]),
            nft_name=data.get("nftName"),
            latest_price=price,
            seller_name=data.get("sellerName"),
            seller_address=data.get("sellerAddress"),
            marketplace=data.get("marketplace"),
            nft_img=data.get("nftImg"),
            raw=dict(data),
        )

    def observed(self, timestamp_ms: int) -> "EventRecord":
        """Return a copy stamped with the time the engine observed it."""
        return replace(self, observed_at=timestamp_ms)

    def payload(self) -> dict[str, Any]:
        """Wire form: the upstream object plus the observation timestamp."""
        data = dict(self.raw) if self.raw else {
            "txHash": self.tx_hash,
            "eventType": self.event_type,
            "nftName": self.nft_name,
            "latestPrice": self.latest_price,
            "sellerName": self.seller_name,
            "sellerAddress": self.seller_address,
            "marketplace": self.marketplace,
            "nftImg": self.nft_img,
        }
        data["timestamp"] = self.observed_at
        return data
