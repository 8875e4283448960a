from __future__ import annotations

import pytest
from starlette.websockets import WebSocketState

from esprelay.backend.services.cache import SensorCache
from esprelay.backend.services.connection import Connection
from esprelay.backend.services.registry import ConnectionRegistry
from esprelay.backend.services.router import MessageRouter


class FakeWebSocket:
    """starlette WebSocket 대신 쓰는 최소 채널."""

    def __init__(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[str] = []
        self.fail = False

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket is broken")
        self.sent.append(data)

    def drop(self) -> None:
        # 원격에서 끊긴 상태
        self.client_state = WebSocketState.DISCONNECTED


@pytest.fixture
def make_conn():
    def _make(outbox_size: int | None = None) -> Connection:
        return Connection(FakeWebSocket(), outbox_size=outbox_size)

    return _make


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def cache() -> SensorCache:
    return SensorCache()


@pytest.fixture
def router(registry: ConnectionRegistry, cache: SensorCache) -> MessageRouter:
    return MessageRouter(registry, cache)
