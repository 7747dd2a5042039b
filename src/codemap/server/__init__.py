"""HTTP/WebSocket boundary."""

from codemap.server.websocket import Broadcaster

__all__ = ["Broadcaster"]
