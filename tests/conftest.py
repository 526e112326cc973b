"""Shared fixtures for nft_stream tests."""

from __future__ import annotations

import html
from urllib.parse import quote

import pytest
from pytest_metadata.plugin import metadata_key

from nft_stream.daemon import StreamDaemon
from nft_stream.engine.broadcast import BroadcastHub
from nft_stream.engine.poller import Poller
from nft_stream.models.config import KUMO_COLLECTION, PollConfig, StreamConfig
from nft_stream.server import messages
from nft_stream.server.protocol import ControlProtocolHandler
from nft_stream.server.registry import ConnectionRegistry

from tests.mocks import MockEventSource

TEST_API_KEY = "test-api-key-0000"
UPSTREAM_BASE = "https://api.blockberry.test"


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add upstream info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Upstream"] = UPSTREAM_BASE
    meta["Collection"] = KUMO_COLLECTION


def pytest_html_results_summary(prefix, summary, postfix):
    """Show the mocked upstream endpoint in the report summary."""
    endpoint = f"{UPSTREAM_BASE}/sui/v1/events/collection/{quote(KUMO_COLLECTION, safe='')}"
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        "<strong>Upstream (mocked)</strong><br/>"
        f"Events endpoint: {html.escape(endpoint)}<br/>"
        f"Collection: {html.escape(KUMO_COLLECTION)}"
        "</div>"
    )


def make_test_config(**overrides) -> StreamConfig:
    """Build a StreamConfig suitable for testing."""
    defaults = dict(
        host="127.0.0.1",
        port=0,
        poll_interval=60_000,
        dedup_capacity=1000,
        base_url=UPSTREAM_BASE,
        collection=KUMO_COLLECTION,
        api_key=TEST_API_KEY,
        request_timeout=2.0,
    )
    defaults.update(overrides)
    return StreamConfig(**defaults)


def _welcome(connection):
    return messages.connection_established(connection.id, KUMO_COLLECTION, 60_000)


@pytest.fixture
def test_config():
    """Default StreamConfig for tests."""
    return make_test_config()


@pytest.fixture
def poll_config(test_config) -> PollConfig:
    return test_config.poll_config()


@pytest.fixture
def mock_source():
    return MockEventSource()


@pytest.fixture
def registry():
    return ConnectionRegistry(welcome=_welcome)


@pytest.fixture
def hub(registry):
    return BroadcastHub(registry)


@pytest.fixture
async def poller(mock_source, hub, poll_config):
    """Poller wired to the mock source. Stopped and drained on teardown."""
    p = Poller(mock_source, hub, poll_config, dedup_capacity=1000)
    yield p
    p.stop()
    if mock_source.gate is not None:
        mock_source.gate.set()
    await p.wait_idle()


@pytest.fixture
def handler(registry, poller):
    return ControlProtocolHandler(registry, poller)


@pytest.fixture
async def daemon(test_config, mock_source):
    """Fully wired StreamDaemon with a mocked event source."""
    d = StreamDaemon(test_config, source=mock_source)
    yield d
    if mock_source.gate is not None:
        mock_source.gate.set()
    await d.shutdown()
