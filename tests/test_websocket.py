from __future__ import annotations

import json
import time

import pytest
from fastapi.testclient import TestClient

from esprelay.backend.main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _wait_until(predicate, timeout: float = 2.0) -> None:
    # 서로 다른 연결 사이의 처리 순서는 보장되지 않으므로 상태를 폴링
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.01)
    raise AssertionError("condition not met in time")


def _client_count(client: TestClient) -> int:
    return client.get("/connections").json()["count"]


def _device_connected(client: TestClient) -> bool:
    return client.get("/connections").json()["device_connected"]


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_health_detail_is_degraded_without_device(client) -> None:
    body = client.get("/health/detail").json()

    assert body["status"] == "degraded"
    assert body["relay"]["device_connected"] is False
    assert body["relay"]["supervisor_running"] is True


def test_latest_snapshot_is_404_before_first_reading(client) -> None:
    response = client.get("/sensor/latest", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == 404
    assert response.json()["error"]["request_id"] == "req-1"


def test_device_and_dashboard_round_trip(client) -> None:
    with client.websocket_connect("/") as dashboard:
        dashboard.send_text("WEB_CLIENT")
        _wait_until(lambda: _client_count(client) == 1)

        with client.websocket_connect("/") as device:
            device.send_text("ESP8266")
            _wait_until(lambda: _device_connected(client))

            device.send_text(json.dumps({"type": "sensor_data", "distance_cm": 25, "device_id": "esp-1"}))
            reading = dashboard.receive_json()
            assert reading["type"] == "sensor_data"
            assert reading["distance_status"] == "WARNING"

            dashboard.send_text("on")
            assert device.receive_text() == "on"

            device.send_text("ON")
            assert dashboard.receive_text() == "LED_ON"

        status = dashboard.receive_json()
        assert status["type"] == "esp_status"
        assert status["status"] == "disconnected"

    assert client.get("/sensor/latest").json()["distance_cm"] == 25


def test_late_joiner_gets_cached_snapshot(client) -> None:
    with client.websocket_connect("/ws") as device:
        device.send_text("ESP8266_DISTANCE_SENSOR")
        device.send_text(json.dumps({"type": "sensor_data", "distance": 8}))
        _wait_until(lambda: client.get("/sensor/latest").status_code == 200)

        with client.websocket_connect("/ws") as dashboard:
            dashboard.send_text("WEB_CLIENT")
            snapshot = dashboard.receive_json()

    assert snapshot["distance_cm"] == 8
    assert snapshot["distance_status"] == "DANGER"


def test_heartbeat_is_acknowledged(client) -> None:
    with client.websocket_connect("/") as device:
        device.send_text("ESP8266")
        device.send_text(json.dumps({"type": "heartbeat", "distance": 45, "wifi_rssi": -58}))

        ack = device.receive_json()

    assert ack["type"] == "heartbeat_ack"
    latest = client.get("/sensor/latest").json()
    assert latest["distance_status"] == "SAFE"
    assert latest["wifi_rssi"] == -58


def test_client_disconnect_is_not_broadcast(client) -> None:
    with client.websocket_connect("/") as watcher:
        watcher.send_text("WEB_CLIENT")
        _wait_until(lambda: _client_count(client) == 1)

        with client.websocket_connect("/") as other:
            other.send_text("WEB_CLIENT")
            _wait_until(lambda: _client_count(client) == 2)

        _wait_until(lambda: _client_count(client) == 1)

        # 클라이언트 종료는 알리지 않으므로 다음 메시지는 장치 응답이어야 함
        with client.websocket_connect("/") as device:
            device.send_text("ESP8266")
            device.send_text("LED_OFF")
            assert watcher.receive_text() == "LED_OFF"
