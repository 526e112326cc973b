"""Control protocol: ping, refresh, filter updates and malformed input."""

from __future__ import annotations

import asyncio

import pytest

from nft_stream.models.records import PollState
from nft_stream.server.protocol import ProtocolError, parse_message

from tests.mocks import MockTransport

INVALID = {"type": "error", "message": "Invalid message format. Expected JSON."}


@pytest.fixture
async def client(registry):
    """A connected subscriber; the greeting is discarded."""
    transport = MockTransport()
    conn = await registry.connect(transport)
    transport.sent.clear()
    return conn.id, transport


async def test_ping_echoes_timestamp(handler, client):
    conn_id, transport = client
    await handler.handle(conn_id, '{"type":"ping","timestamp":1000}')
    assert transport.messages == [{"type": "pong", "timestamp": 1000}]


async def test_ping_without_timestamp_gets_server_time(handler, client):
    conn_id, transport = client
    await handler.handle(conn_id, '{"type":"ping"}')
    (reply,) = transport.messages
    assert reply["type"] == "pong"
    assert isinstance(reply["timestamp"], int)


async def test_non_json_gets_error_and_stays_connected(handler, client, registry):
    conn_id, transport = client
    await handler.handle(conn_id, "definitely not json")

    assert transport.messages == [INVALID]
    assert conn_id in registry
    assert not transport.closed

    # Still usable afterwards
    await handler.handle(conn_id, '{"type":"ping","timestamp":5}')
    assert transport.messages[-1] == {"type": "pong", "timestamp": 5}


@pytest.mark.parametrize("payload", ["[1, 2]", '"ping"', "42", b"\xff\xfe"])
async def test_non_object_payloads_get_error(handler, client, payload):
    conn_id, transport = client
    await handler.handle(conn_id, payload)
    assert transport.messages == [INVALID]


async def test_binary_json_frame_is_accepted(handler, client):
    conn_id, transport = client
    await handler.handle(conn_id, b'{"type":"ping","timestamp":7}')
    assert transport.messages == [{"type": "pong", "timestamp": 7}]


async def test_unknown_type_is_ignored(handler, client, mock_source):
    conn_id, transport = client
    await handler.handle(conn_id, '{"type":"subscribe","channel":"all"}')
    await handler.handle(conn_id, '{"no_type":true}')
    assert transport.sent == []
    assert mock_source.fetch_calls == 0


async def test_get_latest_events_replies_then_polls(handler, client, poller, mock_source):
    conn_id, transport = client
    await handler.handle(conn_id, '{"type":"get_latest_events"}')

    (reply,) = transport.messages
    assert reply["type"] == "fetching_events"
    assert "timestamp" in reply
    assert poller.state is PollState.IN_FLIGHT

    await poller.wait_idle()
    assert mock_source.fetch_calls == 1


async def test_get_latest_events_while_in_flight_does_not_refetch(handler, client, poller, mock_source):
    conn_id, transport = client
    mock_source.gate = asyncio.Event()
    poller.trigger_now()
    await asyncio.sleep(0)

    await handler.handle(conn_id, '{"type":"get_latest_events"}')
    await handler.handle(conn_id, '{"type":"get_latest_events"}')
    assert len(transport.of_type("fetching_events")) == 2

    mock_source.gate.set()
    await poller.wait_idle()
    assert mock_source.fetch_calls == 1


async def test_update_filters_replies_and_updates_poller(handler, client, poller, mock_source):
    conn_id, transport = client
    await handler.handle(
        conn_id, '{"type":"update_filters","eventTypes":["Sale","List"],"marketplaces":"BlueMove"}',
    )

    (reply,) = transport.messages
    assert reply["type"] == "filters_updated"
    assert reply["eventTypes"] == ["Sale", "List"]
    assert reply["marketplaces"] == ["BlueMove"]

    await poller.wait_idle()
    assert poller.config.event_types == ["Sale", "List"]
    assert poller.config.marketplaces == ["BlueMove"]
    assert mock_source.configs[-1].marketplaces == ["BlueMove"]


async def test_update_filters_keeps_missing_filter(handler, client, poller):
    conn_id, transport = client
    await handler.handle(conn_id, '{"type":"update_filters","eventTypes":"Sale"}')

    (reply,) = transport.messages
    assert reply["eventTypes"] == ["Sale"]
    assert reply["marketplaces"] == ["TradePort"]
    await poller.wait_idle()


async def test_update_filters_without_filters_is_ignored(handler, client, poller, mock_source):
    conn_id, transport = client
    await handler.handle(conn_id, '{"type":"update_filters"}')
    assert transport.sent == []
    assert mock_source.fetch_calls == 0
    assert poller.config.event_types == ["List"]


async def test_update_filters_with_bad_value_gets_error(handler, client, poller):
    conn_id, transport = client
    await handler.handle(conn_id, '{"type":"update_filters","eventTypes":[1,2]}')

    (reply,) = transport.messages
    assert reply["type"] == "error"
    assert "eventTypes" in reply["message"]
    assert poller.config.event_types == ["List"]


async def test_reply_to_departed_client_is_dropped(handler, client, registry):
    conn_id, transport = client
    registry.remove(conn_id)
    await handler.handle(conn_id, '{"type":"ping","timestamp":1}')
    assert transport.sent == []


def test_parse_message():
    assert parse_message('{"type":"ping"}') == {"type": "ping"}
    with pytest.raises(ProtocolError):
        parse_message("{")
    with pytest.raises(ProtocolError):
        parse_message("null")
