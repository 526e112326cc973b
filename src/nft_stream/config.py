"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from nft_stream.models.config import StreamConfig


def _str_list(value: object) -> list[str]:
    """Accept "List" or ["List", "Sale"] and return a list of strings."""
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]  # type: ignore[union-attr]


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "NFT_STREAM_",
) -> StreamConfig:
    """Load server configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (NFT_STREAM_API_KEY, etc.)
        2. TOML config file
        3. Defaults from StreamConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = StreamConfig()

    # ── Server section ─────────────────────────────────────
    server = raw.get("server", {})
    if v := server.get("host"):
        cfg.host = str(v)
    if v := server.get("port"):
        cfg.port = int(v)
    if v := server.get("log_level"):
        cfg.log_level = str(v)

    # ── Poller section ─────────────────────────────────────
    poller = raw.get("poller", {})
    if v := poller.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := poller.get("dedup_capacity"):
        cfg.dedup_capacity = int(v)
    if v := poller.get("event_types"):
        cfg.event_types = _str_list(v)
    if v := poller.get("marketplaces"):
        cfg.marketplaces = _str_list(v)

    # ── Upstream section ───────────────────────────────────
    upstream = raw.get("upstream", {})
    if v := upstream.get("base_url"):
        cfg.base_url = str(v)
    if v := upstream.get("collection"):
        cfg.collection = str(v)
    if v := upstream.get("api_key"):
        cfg.api_key = str(v)
    if v := upstream.get("page_size"):
        cfg.page_size = int(v)
    if v := upstream.get("request_timeout"):
        cfg.request_timeout = float(v)

    # ── Environment variable overrides (highest priority) ──
    if key := os.environ.get(f"{env_prefix}API_KEY") or os.environ.get("X_API_KEY"):
        cfg.api_key = key
    if host := os.environ.get(f"{env_prefix}HOST"):
        cfg.host = host
    if port := os.environ.get(f"{env_prefix}PORT"):
        cfg.port = int(port)
    if interval := os.environ.get(f"{env_prefix}POLL_INTERVAL"):
        cfg.poll_interval = int(interval)
    if collection := os.environ.get(f"{env_prefix}COLLECTION"):
        cfg.collection = collection
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level

    return cfg
