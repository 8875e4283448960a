"""
ESP Relay Backend Health Check Routes

서버 및 릴레이 상태 확인 엔드포인트.
"""

from fastapi import APIRouter, Depends

from ...core.config import settings
from ...models import utc_timestamp
from ...services.hub import RelayHub
from ..dependencies import get_hub

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """간단한 헬스체크 (빠른 응답용).

    Returns:
        dict: 서버 상태와 현재 시간
    """
    return {"status": "healthy", "timestamp": utc_timestamp()}


@router.get("/health/detail")
async def health_check_detail(hub: RelayHub = Depends(get_hub)):
    """상세 헬스체크.

    장치 연결 여부, 클라이언트 수, 캐시 상태, 생존 감시 동작 여부를 반환합니다.
    장치가 없거나 감시 작업이 멈췄으면 degraded.
    """
    relay = hub.status()
    healthy = relay["device_connected"] and relay["supervisor_running"]

    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": utc_timestamp(),
        "version": settings.APP_VERSION,
        "relay": relay,
    }


@router.get("/health/live")
async def liveness_check():
    """생존 상태 체크 (외부 의존성 무관)."""
    return {"status": "alive"}
