"""
ESP Relay Backend WebSocket Routes

장치(ESP8266)와 대시보드 클라이언트가 공유하는 WebSocket 엔드포인트.

Protocol:
    - 연결 직후 역할 없음 (UNIDENTIFIED)
    - 장치: "ESP8266" 또는 "ESP8266_DISTANCE_SENSOR" 전송
    - 클라이언트: "WEB_CLIENT" 전송 (캐시된 스냅샷을 즉시 수신)
    - 이후 JSON 텔레메트리 / 평문 명령은 MessageRouter 가 분류
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ...core.logging import bind_context, clear_context, get_logger
from ...services.hub import RelayHub
from ..dependencies import get_ws_hub

logger = get_logger(__name__)
router = APIRouter(tags=["WebSocket"])


async def relay_session(websocket: WebSocket, hub: RelayHub) -> None:
    """연결 하나의 수신 루프.

    한 연결의 메시지는 수신 순서대로 처리되며, 송신은 연결별 큐를 거치므로
    다른 연결의 처리를 막지 않습니다. 정상 종료와 전송 오류 모두 같은 정리를 거칩니다.
    """
    await websocket.accept()
    conn = hub.open(websocket)
    bind_context(conn_id=conn.id)
    logger.info("WebSocket 연결됨", client=str(websocket.client))

    try:
        while True:
            text = await websocket.receive_text()
            logger.debug("메시지 수신", role=conn.role.value, message=text[:120])
            hub.handle(conn, text)

    except WebSocketDisconnect as e:
        logger.info("WebSocket 연결 종료", role=conn.role.value, code=e.code)

    except Exception as e:
        logger.error(
            "WebSocket 오류",
            role=conn.role.value,
            error=str(e),
            exc_info=True,
        )
    finally:
        await hub.close(conn)
        clear_context()


@router.websocket("/")
async def websocket_root(websocket: WebSocket, hub: RelayHub = Depends(get_ws_hub)):
    """장치 펌웨어가 접속하는 기본 경로."""
    await relay_session(websocket, hub)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, hub: RelayHub = Depends(get_ws_hub)):
    """대시보드용 별칭 경로."""
    await relay_session(websocket, hub)
