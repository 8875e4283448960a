"""
ESP Relay Backend Sensor Routes

캐시된 센서 스냅샷 및 연결 상태 조회 엔드포인트.
"""

from fastapi import APIRouter, Depends, HTTPException

from ...services.hub import RelayHub
from ..dependencies import get_hub

router = APIRouter(tags=["Sensor"])


@router.get("/sensor/latest")
async def get_latest_snapshot(hub: RelayHub = Depends(get_hub)):
    """마지막으로 수신한 센서 스냅샷을 조회합니다.

    Returns:
        dict: WebSocket 클라이언트가 받는 것과 같은 sensor_data 메시지

    Raises:
        HTTPException: 아직 측정값이 없는 경우 404
    """
    snapshot = hub.cache.get()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No sensor data received yet")
    return snapshot.to_message()


@router.get("/connections")
async def get_connections(hub: RelayHub = Depends(get_hub)):
    """현재 장치/클라이언트 연결 현황."""
    status = hub.status()
    return {
        "device": status["device_id"],
        "device_connected": status["device_connected"],
        "clients": status["clients"],
        "count": status["client_count"],
    }
