"""WebSocket server side: connection registry, control protocol and aiohttp app."""
