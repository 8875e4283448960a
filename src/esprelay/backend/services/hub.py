"""
ESP Relay Backend Hub

릴레이 서비스 객체. 레지스트리, 캐시, 라우터, 생존 감시를 소유합니다.
애플리케이션 lifespan 에서 생성/시작하고 종료 시 정리합니다.
"""

from typing import Any, Optional

from ..core.logging import get_logger
from .cache import SensorCache
from .connection import Connection, TextChannel, deliver
from .liveness import PING_INTERVAL, SWEEP_INTERVAL, LivenessSupervisor
from .registry import ConnectionRegistry
from .router import MessageRouter

logger = get_logger(__name__)


class RelayHub:
    """장치 1대와 대시보드 클라이언트들을 잇는 릴레이.

    모든 상태 변경은 하나의 이벤트 루프에서 동기 함수로 일어나므로
    메시지 처리와 주기 작업이 서로 겹치지 않습니다.

    Usage:
        hub = RelayHub()
        await hub.start()
        conn = hub.open(websocket)
        hub.handle(conn, "WEB_CLIENT")
        await hub.close(conn)
        await hub.stop()
    """

    def __init__(
        self,
        sweep_interval: float = SWEEP_INTERVAL,
        ping_interval: float = PING_INTERVAL,
        outbox_size: Optional[int] = None,
    ):
        self.registry = ConnectionRegistry()
        self.cache = SensorCache()
        self.router = MessageRouter(self.registry, self.cache)
        self.supervisor = LivenessSupervisor(
            self.registry,
            self.router,
            sweep_interval=sweep_interval,
            ping_interval=ping_interval,
        )
        self._outbox_size = outbox_size
        self._connections: dict[str, Connection] = {}

    async def start(self) -> None:
        self.supervisor.start()
        logger.info("릴레이 허브 시작")

    async def stop(self) -> None:
        await self.supervisor.stop()
        for conn in list(self._connections.values()):
            await conn.close()
        self._connections.clear()
        logger.info("릴레이 허브 종료")

    def open(self, websocket: TextChannel) -> Connection:
        """수락된 WebSocket 을 UNIDENTIFIED 연결로 추적 시작."""
        conn = Connection(websocket, outbox_size=self._outbox_size)
        conn.start()
        self._connections[conn.id] = conn
        logger.debug("새 연결", conn_id=conn.id, connections=len(self._connections))
        return conn

    def handle(self, conn: Connection, text: str) -> int:
        """수신 메시지 하나를 라우팅하고 송신 큐에 넣습니다.

        Returns:
            큐에 들어간 메시지 수
        """
        return deliver(self.router.route(conn, text))

    async def close(self, conn: Connection) -> None:
        """연결 종료 또는 전송 오류 후 정리."""
        conn.mark_closed()
        deliver(self.router.on_close(conn))
        self._connections.pop(conn.id, None)
        await conn.close()

    def status(self) -> dict[str, Any]:
        """헬스체크/모니터링용 상태 요약."""
        device = self.registry.device()
        return {
            "device_connected": device is not None and device.is_open,
            "device_id": device.id if device is not None else None,
            "clients": [c.id for c in self.registry.clients()],
            "client_count": self.registry.client_count,
            "connections": len(self._connections),
            "snapshot_cached": self.cache.has_snapshot,
            "unhandled_messages": self.router.unhandled_count,
            "supervisor_running": self.supervisor.running,
        }
