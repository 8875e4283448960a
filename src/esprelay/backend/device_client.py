"""
ESP Relay Device Simulator (장치 시뮬레이터)

실제 ESP8266 없이 릴레이를 시험하기 위한 가상 거리 센서 장치입니다.
펌웨어와 같은 프로토콜로 동작합니다.

- 접속 직후 "ESP8266_DISTANCE_SENSOR" 식별 문자열 전송
- 주기적으로 sensor_data 전송, 그 사이에 heartbeat 전송
- "on"/"off" 수신 시 LED 상태 변경 후 LED_ON/LED_OFF 응답 (--legacy 면 ON/OFF)
- "toggle_manual" 수신 시 수동 모드 전환 후 button_event 전송
- "get_distance" 수신 시 즉시 sensor_data 전송

사용법:
    esp-relay-device --url ws://localhost:10000 --interval 1.0

    # 비동기 코드에서
    async with DeviceSimulator("ws://localhost:10000") as device:
        await device.send_reading()
"""

import argparse
import asyncio
import json
import math
import random
import time
from dataclasses import dataclass, field
from typing import Optional

import websockets

from .core.logging import get_logger, setup_logging

logger = get_logger(__name__)

DEFAULT_RELAY_URL = "ws://localhost:10000"
DEVICE_IDENTITY = "ESP8266_DISTANCE_SENSOR"


@dataclass
class DeviceStats:
    """시뮬레이터 통계 정보"""
    readings_sent: int = 0
    heartbeats_sent: int = 0
    commands_received: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def uptime(self) -> float:
        return time.time() - self.start_time


class DeviceSimulator:
    """
    가상 ESP8266 거리 센서.

    Args:
        relay_url: 릴레이 WebSocket URL (예: "ws://localhost:10000")
        device_id: 장치 식별자 (sensor_data 의 device_id)
        legacy: True 면 구버전 펌웨어처럼 ON/OFF 로 응답
        heartbeat_every: sensor_data N 번마다 heartbeat 1 번
    """

    def __init__(
        self,
        relay_url: str = DEFAULT_RELAY_URL,
        device_id: str = "esp8266-sim",
        legacy: bool = False,
        heartbeat_every: int = 5,
    ):
        # HTTP URL을 WebSocket URL로 변환
        if relay_url.startswith("http://"):
            relay_url = relay_url.replace("http://", "ws://", 1)
        elif relay_url.startswith("https://"):
            relay_url = relay_url.replace("https://", "wss://", 1)

        self.relay_url = relay_url
        self.device_id = device_id
        self.legacy = legacy
        self.heartbeat_every = max(1, heartbeat_every)

        self.led_on = False
        self.manual_mode = False
        self._ws = None
        self._tick = 0
        self.stats = DeviceStats()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # =========================================================================
    # 연결 관리
    # =========================================================================

    async def connect(self) -> None:
        """릴레이에 접속하고 장치 식별 문자열을 보냅니다."""
        self._ws = await websockets.connect(self.relay_url)
        await self._ws.send(DEVICE_IDENTITY)
        self.stats = DeviceStats()
        logger.info("릴레이 연결 성공", url=self.relay_url, device_id=self.device_id)

    async def disconnect(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        logger.info(
            "릴레이 연결 종료",
            readings=self.stats.readings_sent,
            heartbeats=self.stats.heartbeats_sent,
        )

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    # =========================================================================
    # 송신
    # =========================================================================

    def measure(self) -> float:
        """가짜 거리 측정값 (cm). 천천히 다가왔다 멀어지는 물체."""
        base = 35 + 30 * math.sin(self._tick / 10)
        return round(max(2.0, base + random.uniform(-1.5, 1.5)), 1)

    def reading(self) -> dict:
        return {
            "type": "sensor_data",
            "distance_cm": self.measure(),
            "device_id": self.device_id,
            "manual_mode": self.manual_mode,
            "led_state": self.led_on,
            "vibration": False,
            "buzzer": False,
            "voltage": round(random.uniform(3.2, 3.35), 2),
        }

    def heartbeat(self) -> dict:
        return {
            "type": "heartbeat",
            "distance": self.measure(),
            "manual_mode": self.manual_mode,
            "uptime": int(self.stats.uptime * 1000),
            "wifi_rssi": random.randint(-75, -45),
            "free_heap": random.randint(28000, 32000),
        }

    async def send_reading(self) -> None:
        await self._ws.send(json.dumps(self.reading()))
        self.stats.readings_sent += 1

    async def send_heartbeat(self) -> None:
        await self._ws.send(json.dumps(self.heartbeat()))
        self.stats.heartbeats_sent += 1

    async def _publish_loop(self, interval: float) -> None:
        while True:
            self._tick += 1
            if self._tick % self.heartbeat_every == 0:
                await self.send_heartbeat()
            else:
                await self.send_reading()
            await asyncio.sleep(interval)

    # =========================================================================
    # 수신 (릴레이 -> 장치 명령)
    # =========================================================================

    def reply_for(self, command: str) -> Optional[str]:
        """평문 명령에 대한 응답 문자열 (응답이 없으면 None)."""
        if command in ("on", "off"):
            self.led_on = command == "on"
            if self.legacy:
                return "ON" if self.led_on else "OFF"
            return "LED_ON" if self.led_on else "LED_OFF"

        if command == "toggle_manual":
            self.manual_mode = not self.manual_mode
            return json.dumps({"type": "button_event", "manual_mode": self.manual_mode})

        if command == "get_distance":
            return json.dumps(self.reading())

        return None

    async def _receive_loop(self) -> None:
        async for message in self._ws:
            if not isinstance(message, str) or message.startswith("{"):
                # heartbeat_ack, ping 등 릴레이 JSON 은 무시
                continue
            self.stats.commands_received += 1
            logger.info("명령 수신", command=message)
            reply = self.reply_for(message)
            if reply is not None:
                await self._ws.send(reply)

    async def run(self, interval: float = 1.0) -> None:
        """연결이 끊길 때까지 송신/수신 루프를 실행합니다."""
        publisher = asyncio.create_task(self._publish_loop(interval))
        try:
            await self._receive_loop()
        finally:
            publisher.cancel()
            try:
                await publisher
            except asyncio.CancelledError:
                pass


# =============================================================================
# CLI
# =============================================================================

async def _run_cli(args: argparse.Namespace) -> None:
    device = DeviceSimulator(
        relay_url=args.url,
        device_id=args.device_id,
        legacy=args.legacy,
        heartbeat_every=args.heartbeat_every,
    )
    async with device:
        await device.run(interval=args.interval)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="ESP8266 거리 센서 시뮬레이터",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", default=DEFAULT_RELAY_URL, help="릴레이 WebSocket URL")
    parser.add_argument("--device-id", default="esp8266-sim", help="장치 ID")
    parser.add_argument("--interval", type=float, default=1.0, help="전송 간격 (초)")
    parser.add_argument("--heartbeat-every", type=int, default=5, help="N 번째마다 heartbeat 전송")
    parser.add_argument("--legacy", action="store_true", help="구버전 ON/OFF 응답 사용")
    args = parser.parse_args()

    setup_logging()
    try:
        asyncio.run(_run_cli(args))
    except KeyboardInterrupt:
        logger.info("사용자 중단")


if __name__ == "__main__":
    main()
