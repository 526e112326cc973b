"""CLI entry point for the nft_stream server."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime

import aiohttp
import click

from nft_stream.config import load_config
from nft_stream.daemon import run_daemon
from nft_stream.server import messages
from nft_stream.upstream.client import BlockberryEventSource


def _require_api_key(cfg):
    """Exit with error if no upstream API key is configured."""
    if not cfg.api_key:
        click.echo("Error: No upstream API key configured.", err=True)
        click.echo("Set NFT_STREAM_API_KEY (or X_API_KEY) or api_key in config.", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """nft_stream - real-time NFT marketplace event relay."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    cfg = load_config(config_path)
    ctx.obj["config"] = cfg

    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Server ─────────────────────────────────────────────


@cli.command()
@click.option("--port", type=int, default=None, help="Override the listen port")
@click.pass_context
def run(ctx: click.Context, port: int | None) -> None:
    """Start the event stream server."""
    cfg = ctx.obj["config"]
    _require_api_key(cfg)
    if port is not None:
        cfg.port = port

    click.echo(f"Starting nft_stream server on port {cfg.port}")
    asyncio.run(run_daemon(cfg))


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show effective configuration."""
    cfg = ctx.obj["config"]
    click.echo(f"Listen:        {cfg.host}:{cfg.port}")
    click.echo(f"Upstream:      {cfg.base_url}")
    click.echo(f"Collection:    {cfg.collection}")
    click.echo(f"Poll interval: {cfg.poll_interval}ms")
    click.echo(f"Event types:   {', '.join(cfg.event_types)}")
    click.echo(f"Marketplaces:  {', '.join(cfg.marketplaces)}")
    click.echo(f"Dedup window:  {cfg.dedup_capacity}")
    click.echo(f"Timeout:       {cfg.request_timeout}s")
    click.echo(f"API key:       {'***configured***' if cfg.api_key else '(not set)'}")


# ── Upstream ───────────────────────────────────────────


@cli.command()
@click.option("--event-type", "event_types", multiple=True, help="Event type filter (repeatable)")
@click.option("--marketplace", "marketplaces", multiple=True, help="Marketplace filter (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Print raw event objects")
@click.pass_context
def fetch(ctx: click.Context, event_types: tuple[str, ...],
          marketplaces: tuple[str, ...], as_json: bool) -> None:
    """Fetch the latest events once and print them."""
    cfg = ctx.obj["config"]
    _require_api_key(cfg)

    poll_cfg = cfg.poll_config()
    if event_types:
        poll_cfg.event_types = list(event_types)
    if marketplaces:
        poll_cfg.marketplaces = list(marketplaces)

    source = BlockberryEventSource(cfg.base_url, cfg.page_size, cfg.request_timeout)
    result = asyncio.run(source.fetch(poll_cfg))

    if not result.success:
        click.echo(f"Fetch failed: {result.error}", err=True)
        sys.exit(1)

    click.echo(f"Found {len(result.events)} events ({result.duration_ms}ms)")
    for event in result.events:
        if as_json:
            click.echo(json.dumps(event.raw, indent=2))
            continue
        price = f"{event.latest_price} SUI" if event.latest_price is not None else "N/A"
        click.echo(
            f"  {event.event_type:<8} {event.nft_name or 'Unknown':<24} "
            f"price={price} tx={event.tx_hash}"
        )


# ── Subscriber ─────────────────────────────────────────


def _print_message(message: dict) -> None:
    msg_type = message.get("type")
    if msg_type == messages.CONNECTION_ESTABLISHED:
        click.echo(f"Connection established. Client ID: {message.get('clientId')}")
        click.echo(f"Monitoring collection: {message.get('collection')}")
        click.echo(f"Poll interval: {message.get('pollInterval')}ms")
    elif msg_type == messages.PONG:
        ts = message.get("timestamp")
        if isinstance(ts, (int, float)):
            click.echo(f"Ping-pong latency: {messages.now_ms() - int(ts)}ms")
    elif msg_type == messages.NFT_EVENT:
        data = message.get("data") or {}
        price = data.get("latestPrice")
        seen = data.get("timestamp")
        click.echo("\n=== NEW NFT EVENT ===")
        click.echo(f"Transaction: {data.get('txHash')}")
        click.echo(f"Type: {data.get('eventType')}")
        click.echo(f"NFT: {data.get('nftName') or 'Unknown'}")
        click.echo(f"Price: {f'{price} SUI' if price else 'N/A'}")
        click.echo(f"Seller: {data.get('sellerName') or data.get('sellerAddress') or 'Unknown'}")
        click.echo(f"Marketplace: {data.get('marketplace') or 'Unknown'}")
        if isinstance(seen, (int, float)):
            click.echo(f"Timestamp: {datetime.fromtimestamp(seen / 1000).isoformat(sep=' ')}")
        if data.get("nftImg"):
            click.echo(f"NFT Image: {data['nftImg']}")
        click.echo("=====================\n")
    elif msg_type == messages.ERROR:
        click.echo(f"Server Error: {message.get('message')}", err=True)
    else:
        click.echo(f"Received message: {message}")


async def _watch(url: str, ping_interval: float, refresh: bool) -> None:
    async with aiohttp.ClientSession() as session:
        async with session.ws_connect(url) as ws:
            click.echo("Connected to NFT Event Stream server")

            async def _pinger():
                while True:
                    await ws.send_json({"type": messages.PING, "timestamp": messages.now_ms()})
                    await asyncio.sleep(ping_interval)

            pinger = asyncio.create_task(_pinger())
            if refresh:
                await ws.send_json({"type": messages.GET_LATEST_EVENTS})
            try:
                async for msg in ws:
                    if msg.type != aiohttp.WSMsgType.TEXT:
                        continue
                    try:
                        _print_message(json.loads(msg.data))
                    except json.JSONDecodeError as exc:
                        click.echo(f"Failed to parse message: {exc}", err=True)
            finally:
                pinger.cancel()
    click.echo("Disconnected from server")


@cli.command()
@click.option("--url", default=None, help="Server URL (default ws://localhost:<port>)")
@click.option("--ping-interval", type=float, default=30.0, help="Seconds between pings")
@click.option("--refresh", is_flag=True, help="Ask for a poll right after connecting")
@click.pass_context
def watch(ctx: click.Context, url: str | None, ping_interval: float, refresh: bool) -> None:
    """Connect as a subscriber and print incoming events."""
    cfg = ctx.obj["config"]
    url = url or f"ws://localhost:{cfg.port}"
    try:
        asyncio.run(_watch(url, ping_interval, refresh))
    except KeyboardInterrupt:
        click.echo("\nClosing WebSocket connection...")
    except aiohttp.ClientError as exc:
        click.echo(f"Could not connect to {url}: {exc}", err=True)
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
