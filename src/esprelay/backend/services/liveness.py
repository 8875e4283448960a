"""
ESP Relay Backend Liveness Supervisor

연결 생존 감시. 두 개의 독립적인 주기 작업을 실행합니다.

- sweep (30초): 닫힌 클라이언트 제거, 닫힌 장치 슬롯 비우기
- ping  (15초): 장치와 열린 클라이언트에 keepalive 전송

테스트에서는 start() 없이 sweep()/ping()을 직접 호출합니다.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from ..core.logging import get_logger
from .connection import Connection, deliver
from .registry import ConnectionRegistry
from .router import MessageRouter

logger = get_logger(__name__)

SWEEP_INTERVAL = 30.0  # 초
PING_INTERVAL = 15.0  # 초


class PeriodicTask:
    """취소 가능한 주기 작업.

    Args:
        name: 작업 이름 (로그용)
        interval: 실행 간격 (초)
        action: 매 주기마다 호출할 코루틴 함수
    """

    def __init__(self, name: str, interval: float, action: Callable[[], Awaitable[None]]):
        self.name = name
        self.interval = interval
        self._action = action
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"periodic-{self.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._action()
            except Exception as e:
                # 한 주기의 실패로 타이머가 멈추지 않도록
                logger.error(
                    "주기 작업 실패",
                    task=self.name,
                    error=str(e),
                    exc_info=True,
                )


class LivenessSupervisor:
    """sweep/ping 주기 작업 관리자.

    Args:
        registry: 연결 레지스트리
        router: 연결 종료 처리에 사용하는 라우터 (장치 제거 시 esp_status 브로드캐스트)
        sweep_interval: sweep 간격 (초)
        ping_interval: ping 간격 (초)
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        router: MessageRouter,
        sweep_interval: float = SWEEP_INTERVAL,
        ping_interval: float = PING_INTERVAL,
    ):
        self.registry = registry
        self.router = router
        self._sweeper = PeriodicTask("sweep", sweep_interval, self._sweep_tick)
        self._pinger = PeriodicTask("ping", ping_interval, self._ping_tick)

    @property
    def running(self) -> bool:
        return self._sweeper.running and self._pinger.running

    def start(self) -> None:
        self._sweeper.start()
        self._pinger.start()
        logger.info(
            "생존 감시 시작",
            sweep_interval=self._sweeper.interval,
            ping_interval=self._pinger.interval,
        )

    async def stop(self) -> None:
        await self._sweeper.stop()
        await self._pinger.stop()
        logger.info("생존 감시 종료")

    def sweep(self) -> list[Connection]:
        """닫힌 연결을 레지스트리에서 제거합니다.

        Returns:
            제거된 연결 목록
        """
        evicted: list[Connection] = []

        for client in self.registry.clients():
            if not client.is_open:
                deliver(self.router.on_close(client))
                evicted.append(client)

        device = self.registry.device()
        if device is not None and not device.is_open:
            deliver(self.router.on_close(device))
            evicted.append(device)

        if evicted:
            logger.info(
                "닫힌 연결 정리",
                evicted=[c.id for c in evicted],
                clients=self.registry.client_count,
            )
        return evicted

    def ping(self) -> int:
        """장치와 열린 클라이언트에 keepalive 전송.

        Returns:
            keepalive 를 큐에 넣은 연결 수
        """
        targets = list(self.registry.open_clients())
        device = self.registry.device()
        if device is not None and device.is_open:
            targets.append(device)

        sent = sum(1 for conn in targets if conn.ping())
        logger.debug("keepalive 전송", targets=sent)
        return sent

    async def _sweep_tick(self) -> None:
        self.sweep()

    async def _ping_tick(self) -> None:
        self.ping()
