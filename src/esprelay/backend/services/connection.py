"""
ESP Relay Backend Connection

WebSocket 연결 핸들. 연결마다 고유 ID, 역할(role), 송신 큐를 가집니다.

송신은 논블로킹입니다: send()는 큐에 넣기만 하고, 연결별 writer 태스크가
실제 전송을 담당합니다. 한 연결의 전송이 멈춰도 다른 연결에는 영향이 없습니다.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Protocol, Union

from starlette.websockets import WebSocketState

from ..core.config import settings
from ..core.logging import get_logger
from ..models import keepalive_message

logger = get_logger(__name__)


class ConnectionRole(str, Enum):
    """연결 역할. 레지스트리만 변경합니다."""

    UNIDENTIFIED = "unidentified"
    DEVICE = "device"
    CLIENT = "client"


class TextChannel(Protocol):
    """Connection이 감싸는 전송 채널 (starlette WebSocket 호환)."""

    client_state: WebSocketState
    application_state: WebSocketState

    async def send_text(self, data: str) -> None: ...


class Connection:
    """WebSocket 연결 하나를 나타내는 핸들.

    Attributes:
        id: 소켓 수명 동안 고정되는 불투명 식별자
        role: 현재 역할 (ConnectionRole)
        websocket: 실제 전송 채널

    Usage:
        conn = Connection(websocket)
        conn.start()            # writer 태스크 시작
        conn.send("LED_ON")     # 큐에 추가 (즉시 반환)
        await conn.close()      # writer 정리
    """

    def __init__(self, websocket: TextChannel, outbox_size: Optional[int] = None):
        self.id: str = uuid.uuid4().hex
        self.role: ConnectionRole = ConnectionRole.UNIDENTIFIED
        self.websocket = websocket

        self._outbox: asyncio.Queue[str] = asyncio.Queue(
            maxsize=outbox_size or settings.OUTBOX_SIZE
        )
        self._writer: Optional[asyncio.Task] = None
        self._closed = False
        self._dropped = 0

    def __repr__(self) -> str:
        return f"Connection(id={self.id[:8]}, role={self.role.value})"

    @property
    def is_open(self) -> bool:
        """채널이 아직 열려 있는지 여부."""
        if self._closed:
            return False
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    @property
    def dropped_count(self) -> int:
        """큐가 가득 차 버려진 메시지 수."""
        return self._dropped

    def start(self) -> None:
        """writer 태스크를 시작합니다 (이벤트 루프 안에서 호출)."""
        if self._writer is None:
            self._writer = asyncio.create_task(
                self._write_loop(), name=f"writer-{self.id[:8]}"
            )

    def send(self, message: Union[str, dict[str, Any]]) -> bool:
        """메시지를 송신 큐에 추가합니다 (논블로킹).

        Args:
            message: 문자열 또는 JSON으로 직렬화할 dict

        Returns:
            큐 추가 성공 여부 (닫힌 연결이거나 큐가 가득 차면 False)
        """
        if not self.is_open:
            return False

        text = message if isinstance(message, str) else json.dumps(message)
        try:
            self._outbox.put_nowait(text)
            return True
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "송신 큐 가득 참, 메시지 폐기",
                conn_id=self.id,
                role=self.role.value,
                dropped=self._dropped,
            )
            return False

    def ping(self) -> bool:
        """keepalive 프레임 전송. 응답은 기대하지 않습니다."""
        return self.send(keepalive_message())

    async def drain(self) -> None:
        """큐에 쌓인 메시지가 모두 처리될 때까지 대기."""
        await self._outbox.join()

    def mark_closed(self) -> None:
        """채널 종료 표시. 이후 send()는 무시됩니다."""
        self._closed = True

    async def close(self) -> None:
        """연결을 닫힌 상태로 만들고 writer 태스크를 정리합니다."""
        self.mark_closed()
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None

    async def _write_loop(self) -> None:
        """큐에서 메시지를 꺼내 순서대로 전송."""
        while True:
            text = await self._outbox.get()
            try:
                if not self._closed:
                    await self.websocket.send_text(text)
            except Exception as e:
                # 전송 실패는 이 연결만 닫힌 것으로 처리
                logger.warning(
                    "메시지 전송 실패",
                    conn_id=self.id,
                    role=self.role.value,
                    error=str(e),
                )
                self.mark_closed()
            finally:
                self._outbox.task_done()


@dataclass(frozen=True)
class Outbound:
    """라우터가 만들어 내는 송신 지시 한 건."""

    target: Connection
    payload: str

    @classmethod
    def of(cls, target: Connection, message: Union[str, dict[str, Any]]) -> "Outbound":
        payload = message if isinstance(message, str) else json.dumps(message)
        return cls(target=target, payload=payload)


def deliver(outbounds: Iterable[Outbound]) -> int:
    """송신 지시들을 각 연결의 큐에 넣습니다.

    Returns:
        큐에 들어간 메시지 수
    """
    delivered = 0
    for outbound in outbounds:
        if outbound.target.send(outbound.payload):
            delivered += 1
    return delivered
