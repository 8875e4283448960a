"""
ESP Relay Backend Message Router

수신 메시지 하나를 분류하고 송신 지시(Outbound) 목록을 만듭니다.

분류 우선순위 (먼저 일치하는 것 적용):
    1. 장치 식별 문자열      -> 장치 등록
    2. 클라이언트 식별 문자열 -> 클라이언트 등록 + 캐시 스냅샷 전송
    3. JSON 메시지 (type)    -> heartbeat / sensor_data / button_event / distance_alert
    4. 평문 명령             -> on/off/get_distance/toggle_manual, LED_ON/LED_OFF/ON/OFF
    5. 그 외                 -> 로그만 남기고 폐기

라우터는 전송하지 않습니다. 반환된 Outbound 목록은 호출자가 deliver()로 전달합니다.
"""

from typing import Any, Optional

from pydantic import ValidationError

from ..core.logging import get_logger
from ..models import (
    ButtonEventMessage,
    DeviceEnvelope,
    DistanceAlertMessage,
    HeartbeatMessage,
    SensorDataMessage,
    classify_distance,
    device_envelope_adapter,
    esp_status_message,
    heartbeat_ack_message,
    utc_timestamp,
)
from .cache import SensorCache, SensorSnapshot
from .connection import Connection, ConnectionRole, Outbound
from .registry import ConnectionRegistry

logger = get_logger(__name__)

DEVICE_IDENTITIES = frozenset({"ESP8266", "ESP8266_DISTANCE_SENSOR"})
CLIENT_IDENTITY = "WEB_CLIENT"

# 클라이언트 -> 장치로 그대로 전달하는 명령
DEVICE_COMMANDS = frozenset({"on", "off", "toggle_manual"})
GET_DISTANCE = "get_distance"

# 장치 -> 클라이언트 응답 (구버전 펌웨어의 ON/OFF 는 변환)
DEVICE_REPLIES = {
    "LED_ON": "LED_ON",
    "LED_OFF": "LED_OFF",
    "ON": "LED_ON",
    "OFF": "LED_OFF",
}


class MessageRouter:
    """메시지 분류 및 라우팅 엔진.

    Args:
        registry: 연결 레지스트리
        cache: 센서 스냅샷 캐시
    """

    def __init__(self, registry: ConnectionRegistry, cache: SensorCache):
        self.registry = registry
        self.cache = cache
        self._unhandled = 0

    @property
    def unhandled_count(self) -> int:
        return self._unhandled

    # =========================================================================
    # Entry points
    # =========================================================================

    def route(self, sender: Connection, text: str) -> list[Outbound]:
        """수신 메시지 하나를 처리합니다.

        Args:
            sender: 보낸 연결
            text: 수신한 텍스트

        Returns:
            전송할 Outbound 목록 (없으면 빈 리스트)
        """
        if text in DEVICE_IDENTITIES:
            return self._identify_device(sender, text)

        if text == CLIENT_IDENTITY:
            return self._identify_client(sender)

        envelope = self._parse_envelope(text)
        if envelope is not None and sender.role is not ConnectionRole.UNIDENTIFIED:
            return self._route_envelope(sender, envelope, text)

        outbounds = self._route_command(sender, text)
        if outbounds is not None:
            return outbounds

        self._unhandled += 1
        logger.info(
            "처리되지 않은 메시지",
            conn_id=sender.id,
            role=sender.role.value,
            message=text[:120],
        )
        return []

    def on_close(self, conn: Connection) -> list[Outbound]:
        """연결 종료(정상 종료, 오류, 스윕 제거) 처리.

        장치 연결이 끊기면 열린 클라이언트 전체에 esp_status 를 한 번 보냅니다.
        """
        previous_role = self.registry.unregister(conn)

        if previous_role is ConnectionRole.DEVICE:
            logger.info("장치 연결 해제", conn_id=conn.id)
            return self._broadcast(esp_status_message("disconnected"))

        if previous_role is ConnectionRole.CLIENT:
            logger.info(
                "클라이언트 연결 해제",
                conn_id=conn.id,
                clients=self.registry.client_count,
            )
        return []

    # =========================================================================
    # Identity handshakes
    # =========================================================================

    def _identify_device(self, sender: Connection, literal: str) -> list[Outbound]:
        self.registry.register_device(sender)
        if sender.role is not ConnectionRole.DEVICE:
            logger.info("닫힌 연결의 장치 등록 거부", conn_id=sender.id)
            return []
        logger.info("장치 연결됨", conn_id=sender.id, identity=literal)
        return []

    def _identify_client(self, sender: Connection) -> list[Outbound]:
        added = self.registry.register_client(sender)
        if not added:
            return []

        logger.info(
            "클라이언트 연결됨",
            conn_id=sender.id,
            clients=self.registry.client_count,
        )
        snapshot = self.cache.get()
        if snapshot is None:
            return []
        return [Outbound.of(sender, snapshot.to_message())]

    # =========================================================================
    # Structured (JSON) messages
    # =========================================================================

    @staticmethod
    def _parse_envelope(text: str) -> Optional[DeviceEnvelope]:
        if not text.lstrip().startswith("{"):
            return None
        try:
            return device_envelope_adapter.validate_json(text)
        except ValidationError as e:
            logger.debug("JSON 메시지 해석 실패, 평문으로 처리", errors=e.error_count())
            return None

    def _route_envelope(
        self, sender: Connection, envelope: DeviceEnvelope, raw: str
    ) -> list[Outbound]:
        if isinstance(envelope, HeartbeatMessage):
            return self._on_heartbeat(sender, envelope)
        if isinstance(envelope, SensorDataMessage):
            return self._on_sensor_data(envelope)
        if isinstance(envelope, ButtonEventMessage):
            return self._on_button_event(envelope, raw)
        if isinstance(envelope, DistanceAlertMessage):
            return self._broadcast(raw)
        return []

    def _on_heartbeat(self, sender: Connection, msg: HeartbeatMessage) -> list[Outbound]:
        fields: dict[str, Any] = msg.telemetry_fields()
        if msg.distance_cm is not None:
            fields["distance_status"] = classify_distance(msg.distance_cm)
        fields["timestamp"] = utc_timestamp()

        snapshot = self.cache.update_merge(fields)
        outbounds = self._broadcast(snapshot.to_message())
        outbounds.append(Outbound.of(sender, heartbeat_ack_message()))
        return outbounds

    def _on_sensor_data(self, msg: SensorDataMessage) -> list[Outbound]:
        snapshot = SensorSnapshot(
            distance_cm=msg.distance_cm,
            distance_status=classify_distance(msg.distance_cm),
            device_id=msg.device_id,
            manual_mode=msg.manual_mode,
            telemetry=msg.extra_fields,
            timestamp=utc_timestamp(),
        )
        self.cache.update_full(snapshot)
        return self._broadcast(snapshot.to_message())

    def _on_button_event(self, msg: ButtonEventMessage, raw: str) -> list[Outbound]:
        if self.cache.has_snapshot:
            self.cache.update_merge(
                {"manual_mode": msg.manual_mode, "timestamp": utc_timestamp()}
            )
        logger.info("수동 모드 변경", manual_mode=msg.manual_mode)
        return self._broadcast(raw)

    # =========================================================================
    # Plain-text commands
    # =========================================================================

    def _route_command(self, sender: Connection, text: str) -> Optional[list[Outbound]]:
        """평문 명령 처리. 명령이 아니면 None."""
        if sender.role is ConnectionRole.CLIENT:
            if text in DEVICE_COMMANDS:
                return self._forward_to_device(text)
            if text == GET_DISTANCE:
                return self._get_distance()

        elif sender.role is ConnectionRole.DEVICE:
            reply = DEVICE_REPLIES.get(text)
            if reply is not None:
                return self._broadcast(reply)

        return None

    def _forward_to_device(self, command: str) -> list[Outbound]:
        device = self.registry.device()
        if device is None or not device.is_open:
            logger.info("장치 미연결, 명령 폐기", command=command)
            return []
        return [Outbound.of(device, command)]

    def _get_distance(self) -> list[Outbound]:
        device = self.registry.device()
        if device is not None and device.is_open:
            return [Outbound.of(device, GET_DISTANCE)]

        snapshot = self.cache.get()
        if snapshot is None:
            logger.info("장치 미연결 및 캐시 없음, get_distance 폐기")
            return []
        return self._broadcast(snapshot.to_message())

    # =========================================================================
    # Helpers
    # =========================================================================

    def _broadcast(self, message: Any) -> list[Outbound]:
        """열린 클라이언트 전체에 보낼 Outbound 목록."""
        return [Outbound.of(client, message) for client in self.registry.open_clients()]
