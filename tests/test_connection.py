from __future__ import annotations

import asyncio
import json

import pytest

from esprelay.backend.services.connection import Connection, Outbound, deliver

from conftest import FakeWebSocket


@pytest.mark.asyncio
async def test_writer_sends_in_order() -> None:
    ws = FakeWebSocket()
    conn = Connection(ws)
    conn.start()

    conn.send("first")
    conn.send({"type": "second"})
    await conn.drain()

    assert ws.sent == ["first", json.dumps({"type": "second"})]
    await conn.close()


@pytest.mark.asyncio
async def test_failed_send_closes_only_that_connection() -> None:
    broken_ws, healthy_ws = FakeWebSocket(), FakeWebSocket()
    broken_ws.fail = True
    broken, healthy = Connection(broken_ws), Connection(healthy_ws)
    broken.start()
    healthy.start()

    delivered = deliver([Outbound.of(broken, "LED_ON"), Outbound.of(healthy, "LED_ON")])
    await broken.drain()
    await healthy.drain()

    assert delivered == 2
    assert broken.is_open is False
    assert healthy_ws.sent == ["LED_ON"]
    assert broken.send("LED_OFF") is False

    await broken.close()
    await healthy.close()


@pytest.mark.asyncio
async def test_hung_connection_does_not_block_others() -> None:
    class HangingWebSocket(FakeWebSocket):
        async def send_text(self, data: str) -> None:
            await asyncio.Event().wait()

    hung = Connection(HangingWebSocket())
    ws = FakeWebSocket()
    other = Connection(ws)
    hung.start()
    other.start()

    deliver([Outbound.of(hung, "x"), Outbound.of(other, "x")])
    await asyncio.wait_for(other.drain(), timeout=1.0)

    assert ws.sent == ["x"]
    await hung.close()
    await other.close()


def test_full_outbox_drops_messages() -> None:
    conn = Connection(FakeWebSocket(), outbox_size=1)

    assert conn.send("a") is True
    assert conn.send("b") is False
    assert conn.dropped_count == 1


def test_closed_connection_rejects_sends() -> None:
    ws = FakeWebSocket()
    conn = Connection(ws)
    ws.drop()

    assert conn.is_open is False
    assert conn.send("a") is False
    assert conn.ping() is False


def test_connection_ids_are_unique() -> None:
    ids = {Connection(FakeWebSocket()).id for _ in range(50)}

    assert len(ids) == 50
