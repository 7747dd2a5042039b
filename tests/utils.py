"""Shared test helpers."""

from __future__ import annotations

import asyncio
import json

from starlette.websockets import WebSocketState

AGENT_A = "aaaaaaaa-1111-2222-3333-444444444444"
AGENT_B = "bbbbbbbb-1111-2222-3333-444444444444"
AGENT_C = "cccccccc-1111-2222-3333-444444444444"


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self, should_fail: bool = False, delay: float = 0.0):
        self.should_fail = should_fail
        self.delay = delay
        self.accepted = False
        self.closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.sent_messages: list[dict] = []
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, message: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.should_fail:
            raise Exception("WebSocket connection failed")
        self.sent_messages.append(json.loads(message))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason
