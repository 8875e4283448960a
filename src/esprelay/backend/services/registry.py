"""
ESP Relay Backend Connection Registry

장치(ESP8266) 슬롯 1개와 대시보드 클라이언트 집합을 관리합니다.
역할(role) 할당은 이 모듈에서만 일어나며, 메시지 전송은 하지 않습니다.
"""

from typing import Optional

from ..core.logging import get_logger
from .connection import Connection, ConnectionRole

logger = get_logger(__name__)


class ConnectionRegistry:
    """장치 슬롯과 클라이언트 집합.

    Invariants:
        - 장치 연결은 최대 1개 (새 장치가 등록되면 이전 장치는 역할을 잃음)
        - 클라이언트는 연결 ID로 중복 제거
        - 한 연결은 동시에 하나의 역할만 가짐
    """

    def __init__(self):
        self._device: Optional[Connection] = None
        self._clients: dict[str, Connection] = {}

    def register_device(self, conn: Connection) -> Optional[Connection]:
        """장치 슬롯을 conn으로 교체합니다.

        이전 장치 연결은 닫지 않고 UNIDENTIFIED로 되돌립니다.
        닫힌 연결은 등록하지 않습니다 (슬롯 그대로).

        Returns:
            교체된 이전 장치 연결 (없으면 None)
        """
        previous = self._device
        if previous is conn:
            return None
        if not conn.is_open:
            return None

        self._clients.pop(conn.id, None)
        if previous is not None:
            previous.role = ConnectionRole.UNIDENTIFIED
            logger.info("장치 슬롯 교체", previous=previous.id, current=conn.id)

        self._device = conn
        conn.role = ConnectionRole.DEVICE
        return previous

    def register_client(self, conn: Connection) -> bool:
        """클라이언트 집합에 추가합니다 (멱등).

        Returns:
            새로 추가되었으면 True (닫힌 연결이나 기존 클라이언트는 False)
        """
        if conn.id in self._clients or not conn.is_open:
            return False

        if self._device is conn:
            self._device = None
        self._clients[conn.id] = conn
        conn.role = ConnectionRole.CLIENT
        return True

    def unregister(self, conn: Connection) -> ConnectionRole:
        """conn이 속한 슬롯에서 제거합니다 (멱등).

        Returns:
            제거 전 역할 (어디에도 없었으면 UNIDENTIFIED)
        """
        if self._device is conn:
            self._device = None
            conn.role = ConnectionRole.UNIDENTIFIED
            return ConnectionRole.DEVICE

        if self._clients.pop(conn.id, None) is not None:
            conn.role = ConnectionRole.UNIDENTIFIED
            return ConnectionRole.CLIENT

        return ConnectionRole.UNIDENTIFIED

    def device(self) -> Optional[Connection]:
        """현재 장치 연결."""
        return self._device

    def clients(self) -> tuple[Connection, ...]:
        """현재 클라이언트 목록 (순회용 스냅샷)."""
        return tuple(self._clients.values())

    def open_clients(self) -> tuple[Connection, ...]:
        """채널이 열려 있는 클라이언트만."""
        return tuple(c for c in self._clients.values() if c.is_open)

    @property
    def client_count(self) -> int:
        return len(self._clients)
