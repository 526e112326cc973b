"""Blockberry event source - one POST per poll against the Sui events API."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from nft_stream.models.config import PollConfig
from nft_stream.models.events import EventRecord
from nft_stream.models.records import FetchResult

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.blockberry.one"


def _parse_content(body: Any) -> list[EventRecord]:
    """Turn a response body into event records.

    Raises ValueError if the body is not ``{"content": [event, ...]}`` with
    every event carrying a txHash and an eventType.
    """
    if not isinstance(body, dict):
        raise ValueError(f"expected JSON object, got {type(body).__name__}")
    content = body.get("content")
    if not isinstance(content, list):
        raise ValueError("response has no 'content' array")

    events: list[EventRecord] = []
    for index, item in enumerate(content):
        if not isinstance(item, dict):
            raise ValueError(f"content[{index}] is not an object")
        events.append(EventRecord.from_upstream(item))
    return events


class BlockberryEventSource:
    """Fetches collection events from the Blockberry HTTP API.

    Each call opens its own ``httpx.AsyncClient`` and is bounded by
    ``request_timeout``. Failures come back as ``FetchResult(success=False)``;
    retrying is left to the poller's next tick.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        page_size: int = 20,
        request_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._timeout = httpx.Timeout(request_timeout, connect=min(5.0, request_timeout))
        self._transport = transport

    def _url(self, collection_id: str) -> str:
        return f"{self._base_url}/sui/v1/events/collection/{quote(collection_id, safe='')}"

    async def fetch(self, config: PollConfig) -> FetchResult:
        """POST the filter body for ``config`` and parse the ``content`` array."""
        start = time.monotonic()
        url = self._url(config.collection_id)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    url,
                    params={
                        "page": 0,
                        "size": self._page_size,
                        "orderBy": "DESC",
                        "sortBy": "AGE",
                    },
                    headers={
                        "accept": "*/*",
                        "content-type": "application/json",
                        "x-api-key": config.credential,
                    },
                    json={
                        "eventTypes": list(config.event_types),
                        "marketplaces": list(config.marketplaces),
                    },
                )
                resp.raise_for_status()

        except httpx.TimeoutException as exc:
            duration = int((time.monotonic() - start) * 1000)
            log.warning("Upstream request timed out after %dms: %s", duration, exc)
            return FetchResult(success=False, error="upstream timeout", duration_ms=duration)

        except httpx.HTTPStatusError as exc:
            duration = int((time.monotonic() - start) * 1000)
            status = exc.response.status_code
            log.warning("Upstream returned HTTP %d: %s", status, exc.response.text[:200])
            return FetchResult(
                success=False,
                error=f"upstream HTTP {status}",
                status_code=status,
                duration_ms=duration,
            )

        except httpx.HTTPError as exc:
            duration = int((time.monotonic() - start) * 1000)
            log.warning("Upstream request failed: %s", exc)
            return FetchResult(success=False, error=f"network: {exc}", duration_ms=duration)

        except Exception as exc:
            # e.g. a header value httpx cannot encode, before any response exists
            duration = int((time.monotonic() - start) * 1000)
            log.error("Upstream fetch error: %s", exc)
            return FetchResult(success=False, error=str(exc), duration_ms=duration)

        duration = int((time.monotonic() - start) * 1000)
        try:
            body = resp.json()
        except ValueError as exc:
            log.warning("Upstream returned a non-JSON body: %s", exc)
            return FetchResult(
                success=False,
                error="malformed payload: not JSON",
                status_code=resp.status_code,
                duration_ms=duration,
            )

        try:
            events = _parse_content(body)
        except ValueError as exc:
            log.warning("Invalid event data received: %s", exc)
            return FetchResult(
                success=False,
                error=f"malformed payload: {exc}",
                status_code=resp.status_code,
                duration_ms=duration,
            )

        log.debug("Fetched %d events in %dms", len(events), duration)
        return FetchResult(
            success=True,
            events=events,
            status_code=resp.status_code,
            duration_ms=duration,
        )
