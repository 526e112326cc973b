"""Polling engine: dedup window, single-flight poller and broadcast hub."""
