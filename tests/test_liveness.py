from __future__ import annotations

import asyncio
import json

import pytest

from esprelay.backend.services.liveness import LivenessSupervisor, PeriodicTask


@pytest.fixture
def supervisor(registry, router) -> LivenessSupervisor:
    return LivenessSupervisor(registry, router, sweep_interval=0.01, ping_interval=0.01)


def test_sweep_evicts_closed_clients(supervisor, registry, router, make_conn) -> None:
    alive, dead = make_conn(), make_conn()
    router.route(alive, "WEB_CLIENT")
    router.route(dead, "WEB_CLIENT")
    dead.websocket.drop()

    evicted = supervisor.sweep()

    assert evicted == [dead]
    assert registry.clients() == (alive,)


def test_sweep_clears_closed_device_and_notifies_clients(supervisor, registry, router, make_conn) -> None:
    device, dashboard = make_conn(), make_conn()
    router.route(device, "ESP8266")
    router.route(dashboard, "WEB_CLIENT")
    device.websocket.drop()

    assert supervisor.sweep() == [device]
    assert registry.device() is None

    queued = dashboard._outbox.get_nowait()
    assert json.loads(queued)["type"] == "esp_status"

    # 이후 close 처리에서는 다시 알리지 않음
    assert router.on_close(device) == []


def test_sweep_with_everything_open_is_noop(supervisor, registry, router, make_conn) -> None:
    device, dashboard = make_conn(), make_conn()
    router.route(device, "ESP8266")
    router.route(dashboard, "WEB_CLIENT")

    assert supervisor.sweep() == []
    assert registry.device() is device
    assert registry.clients() == (dashboard,)


@pytest.mark.asyncio
async def test_ping_reaches_device_and_open_clients(supervisor, router, make_conn) -> None:
    device, dashboard, gone, stranger = make_conn(), make_conn(), make_conn(), make_conn()
    router.route(device, "ESP8266")
    router.route(dashboard, "WEB_CLIENT")
    router.route(gone, "WEB_CLIENT")
    gone.websocket.drop()
    for conn in (device, dashboard, stranger):
        conn.start()

    assert supervisor.ping() == 2
    await device.drain()
    await dashboard.drain()

    assert json.loads(device.websocket.sent[0])["type"] == "ping"
    assert json.loads(dashboard.websocket.sent[0])["type"] == "ping"
    assert stranger.websocket.sent == []

    for conn in (device, dashboard, stranger):
        await conn.close()


@pytest.mark.asyncio
async def test_supervisor_timers_run_until_stopped(supervisor, router, make_conn) -> None:
    dead = make_conn()
    router.route(dead, "WEB_CLIENT")
    dead.websocket.drop()

    supervisor.start()
    assert supervisor.running
    await asyncio.sleep(0.05)
    await supervisor.stop()

    assert not supervisor.running
    assert supervisor.registry.clients() == ()


@pytest.mark.asyncio
async def test_periodic_task_survives_failing_action() -> None:
    calls = 0

    async def action() -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("boom")

    task = PeriodicTask("flaky", 0.01, action)
    task.start()
    await asyncio.sleep(0.06)
    await task.stop()

    assert calls >= 2
    assert not task.running
