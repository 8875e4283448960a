"""
ESP Relay Backend Models

WebSocket으로 주고받는 메시지 모델 (pydantic):
- HeartbeatMessage: 장치 생존 신호 + 부분 텔레메트리
- SensorDataMessage: 전체 센서 측정값
- ButtonEventMessage: 장치 버튼으로 수동 모드 전환
- DistanceAlertMessage: 장치가 보내는 거리 경보 (그대로 중계)

장치 펌웨어 버전에 따라 거리 필드 이름이 `distance` 또는 `distance_cm` 이므로
두 이름 모두 받습니다.
"""

import datetime
import math
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter

# 거리 상태 임계값 (cm)
DANGER_BELOW_CM = 10
WARNING_UP_TO_CM = 30


class DistanceStatus(str, Enum):
    """거리 기반 안전 상태."""

    SAFE = "SAFE"
    WARNING = "WARNING"
    DANGER = "DANGER"
    UNKNOWN = "UNKNOWN"


def classify_distance(distance_cm: Optional[float]) -> DistanceStatus:
    """거리(cm)로부터 안전 상태를 계산합니다.

    - 값 없음, 0 이하 또는 유한하지 않은 값(NaN, inf): UNKNOWN (센서 측정 실패)
    - 10 미만: DANGER
    - 10 이상 30 이하: WARNING
    - 30 초과: SAFE
    """
    if distance_cm is None or not math.isfinite(distance_cm) or distance_cm <= 0:
        return DistanceStatus.UNKNOWN
    if distance_cm < DANGER_BELOW_CM:
        return DistanceStatus.DANGER
    if distance_cm <= WARNING_UP_TO_CM:
        return DistanceStatus.WARNING
    return DistanceStatus.SAFE


def utc_timestamp() -> str:
    """릴레이 수신 시각 (ISO-8601 UTC). 장치가 보낸 시각은 신뢰하지 않음."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds")


# =============================================================================
# Inbound envelopes (device -> relay)
# =============================================================================


class _DeviceMessage(BaseModel):
    """장치 메시지 공통 설정. 알 수 없는 텔레메트리 필드는 보존.

    NaN/Infinity 거리는 검증 실패로 처리되어 평문 단계로 넘어갑니다.
    """

    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    @property
    def extra_fields(self) -> dict[str, Any]:
        extra = dict(self.model_extra or {})
        # 두 거리 필드가 함께 오면 distance_cm 이 우선
        extra.pop("distance", None)
        return extra


class HeartbeatMessage(_DeviceMessage):
    type: Literal["heartbeat"]
    distance_cm: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("distance_cm", "distance"),
    )
    manual_mode: Optional[bool] = None
    uptime: Optional[int] = None
    wifi_rssi: Optional[int] = None
    free_heap: Optional[int] = None

    def telemetry_fields(self) -> dict[str, Any]:
        """캐시에 병합할 필드 (값이 있는 것만)."""
        fields = self.model_dump(exclude={"type"}, exclude_none=True)
        fields.pop("distance", None)
        # 상태는 릴레이가 거리로부터 계산
        fields.pop("distance_status", None)
        return fields


class SensorDataMessage(_DeviceMessage):
    type: Literal["sensor_data"]
    distance_cm: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("distance_cm", "distance"),
    )
    device_id: Optional[str] = None
    manual_mode: bool = False
    # 장치가 미리 계산해 보낸 상태는 무시하고 릴레이가 다시 계산함
    distance_status: Optional[str] = None


class ButtonEventMessage(_DeviceMessage):
    type: Literal["button_event"]
    manual_mode: bool


class DistanceAlertMessage(_DeviceMessage):
    type: Literal["distance_alert"]


DeviceEnvelope = Annotated[
    Union[
        HeartbeatMessage,
        SensorDataMessage,
        ButtonEventMessage,
        DistanceAlertMessage,
    ],
    Field(discriminator="type"),
]

device_envelope_adapter: TypeAdapter[DeviceEnvelope] = TypeAdapter(DeviceEnvelope)


# =============================================================================
# Outbound messages (relay -> device / clients)
# =============================================================================


def esp_status_message(status: str) -> dict[str, Any]:
    """장치 연결 상태 이벤트 (클라이언트 브로드캐스트용)."""
    return {"type": "esp_status", "status": status, "timestamp": utc_timestamp()}


def heartbeat_ack_message() -> dict[str, Any]:
    """하트비트 수신 확인 (장치 전용)."""
    return {"type": "heartbeat_ack", "timestamp": utc_timestamp()}


def keepalive_message() -> dict[str, Any]:
    """주기적 keepalive. 응답을 기대하지 않음."""
    return {"type": "ping", "timestamp": utc_timestamp()}
