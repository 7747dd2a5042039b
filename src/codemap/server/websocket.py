"""WebSocket fan-out of state snapshots to observers."""

from __future__ import annotations

import asyncio
import contextlib
import json
import time
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocketState

from codemap.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

log = get_logger("broadcast")

_CLOSED_STATES = (WebSocketState.DISCONNECTED,)


def _is_closed(websocket: WebSocket) -> bool:
    client_state = getattr(websocket, "client_state", WebSocketState.CONNECTED)
    app_state = getattr(websocket, "application_state", WebSocketState.CONNECTED)
    return client_state in _CLOSED_STATES or app_state in _CLOSED_STATES


class Broadcaster:
    """Tracks observer connections and publishes messages to all of them.

    Delivery is best-effort: no acknowledgements, no retries, no queueing.
    Observers are challenged on every heartbeat. An observer answers a
    challenge when a message to it is delivered or when it sends anything;
    one that has not answered by the time the next ping fires is dropped.
    Transport-level ping/pong is left to the ASGI server.
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        self._observers: dict[WebSocket, bool] = {}  # websocket -> answered last ping
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout
        self._heartbeat_task: asyncio.Task[None] | None = None

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new observer connection."""
        await websocket.accept()
        async with self._lock:
            self._observers[websocket] = True
        log.debug("Observer connected. Total: %d", len(self._observers))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._observers.pop(websocket, None)
        log.debug("Observer disconnected. Total: %d", len(self._observers))

    def mark_alive(self, websocket: WebSocket) -> None:
        """Record that an observer answered (any inbound message counts)."""
        if websocket in self._observers:
            self._observers[websocket] = True

    def get_connection_count(self) -> int:
        return len(self._observers)

    async def _send(self, websocket: WebSocket, message: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(message), timeout=self._send_timeout)
            return True
        except Exception as e:
            log.debug("Send to observer failed: %s", e)
            return False

    async def publish(self, kind: str, payload: Any) -> int:
        """Send ``{"type": kind, "data": payload}`` to every observer.

        The payload is serialized once. Observers found closed, or whose
        send fails, are dropped as a side effect.

        Returns:
            Number of observers the message was delivered to.
        """
        message = json.dumps({"type": kind, "data": payload})

        async with self._lock:
            observers = list(self._observers)

        if not observers:
            return 0

        closed = [ws for ws in observers if _is_closed(ws)]
        live = [ws for ws in observers if ws not in closed]
        results = await asyncio.gather(*(self._send(ws, message) for ws in live))
        dead = closed + [ws for ws, ok in zip(live, results) if not ok]

        for ws, ok in zip(live, results):
            if ok:
                self.mark_alive(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._observers.pop(ws, None)
            log.debug("Cleaned up %d closed observers. Total: %d", len(dead), len(self._observers))

        return sum(1 for ok in results if ok)

    async def heartbeat(self) -> int:
        """Run one ping round.

        Returns:
            Number of observers dropped for missing the previous ping.
        """
        async with self._lock:
            unanswered = [ws for ws, alive in self._observers.items() if not alive]
            for ws in unanswered:
                del self._observers[ws]
            challenged = list(self._observers)
            for ws in challenged:
                self._observers[ws] = False

        for ws in unanswered:
            log.info("Terminating unresponsive observer")
            with contextlib.suppress(Exception):
                await ws.close(code=1001, reason="Heartbeat timeout")

        ping = json.dumps({"type": "ping", "data": {"timestamp": int(time.time() * 1000)}})
        live = [ws for ws in challenged if not _is_closed(ws)]
        gone = [ws for ws in challenged if ws not in live]
        results = await asyncio.gather(*(self._send(ws, ping) for ws in live))
        # an undelivered ping stays pending and gets one more round
        for ws, ok in zip(live, results):
            if ok:
                self.mark_alive(ws)
        if gone:
            async with self._lock:
                for ws in gone:
                    self._observers.pop(ws, None)

        return len(unanswered)

    def start_heartbeat(self, interval: float) -> None:
        """Start the periodic ping loop on the running event loop."""
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return

        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    await self.heartbeat()
                except Exception:
                    log.exception("Heartbeat round failed")

        self._heartbeat_task = asyncio.create_task(_loop())

    async def stop_heartbeat(self) -> None:
        if self._heartbeat_task is None:
            return
        self._heartbeat_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._heartbeat_task
        self._heartbeat_task = None

    async def close_all(self, reason: str = "Server shutting down") -> None:
        """Close all observer connections."""
        async with self._lock:
            observers = list(self._observers)
            self._observers.clear()

        for websocket in observers:
            with contextlib.suppress(Exception):
                await websocket.close(code=1001, reason=reason)
        log.info("Closed %d observer connections", len(observers))
