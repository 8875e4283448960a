"""
Sensor Cache Service for ESP Relay.

가장 최근 센서 스냅샷 1개를 보관합니다.
늦게 접속한 클라이언트와 장치가 없을 때의 get_distance 요청에 사용됩니다.

Usage:
    cache = SensorCache()

    # 전체 측정값으로 교체
    cache.update_full(snapshot)

    # 일부 필드만 병합 (하트비트, 버튼 이벤트)
    cache.update_merge({"manual_mode": True, "timestamp": "..."})

    # 조회
    snapshot = cache.get()
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from ..core.logging import get_logger
from ..models import DistanceStatus, utc_timestamp

logger = get_logger(__name__)

# 스냅샷 고정 필드. 그 외 키는 telemetry 로 들어감
_SNAPSHOT_FIELDS = ("distance_cm", "distance_status", "device_id", "manual_mode", "timestamp")


@dataclass(frozen=True)
class SensorSnapshot:
    """마지막으로 관측된 센서 상태."""

    distance_cm: Optional[float] = None
    distance_status: DistanceStatus = DistanceStatus.UNKNOWN
    device_id: Optional[str] = None
    manual_mode: bool = False
    telemetry: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    def to_message(self) -> dict[str, Any]:
        """클라이언트로 보낼 sensor_data 메시지.

        구버전 대시보드 호환을 위해 distance 와 distance_cm 을 모두 포함합니다.
        """
        return {
            "type": "sensor_data",
            **self.telemetry,
            "distance": self.distance_cm,
            "distance_cm": self.distance_cm,
            "distance_status": self.distance_status.value,
            "device_id": self.device_id,
            "manual_mode": self.manual_mode,
            "timestamp": self.timestamp,
        }


@dataclass
class CacheStats:
    """캐시 통계."""

    full_updates: int = 0
    merges: int = 0
    hits: int = 0
    misses: int = 0


class SensorCache:
    """최신 센서 스냅샷 캐시.

    스냅샷은 한 번 생기면 프로세스가 끝날 때까지 삭제되지 않습니다.
    스냅샷 객체는 불변이며 갱신할 때마다 새 객체로 교체됩니다.
    """

    def __init__(self):
        self._snapshot: Optional[SensorSnapshot] = None
        self._stats = CacheStats()

    def update_full(self, snapshot: SensorSnapshot) -> SensorSnapshot:
        """스냅샷을 통째로 교체합니다."""
        self._snapshot = snapshot
        self._stats.full_updates += 1
        logger.debug(
            "센서 스냅샷 교체",
            distance_cm=snapshot.distance_cm,
            distance_status=snapshot.distance_status.value,
        )
        return snapshot

    def update_merge(self, fields: dict[str, Any]) -> SensorSnapshot:
        """지정한 필드만 얕게 병합합니다. 스냅샷이 없으면 새로 만듭니다.

        Args:
            fields: 병합할 필드. distance/distance_cm 은 distance_cm 으로,
                알 수 없는 키는 telemetry 로 들어갑니다.

        Returns:
            병합 후 스냅샷
        """
        base = self._snapshot or SensorSnapshot()
        changes: dict[str, Any] = {}
        telemetry = dict(base.telemetry)

        for key, value in fields.items():
            if key == "distance":
                key = "distance_cm"
            if key == "type":
                continue
            if key == "distance_status" and not isinstance(value, DistanceStatus):
                value = DistanceStatus(value)
            if key in _SNAPSHOT_FIELDS:
                changes[key] = value
            else:
                telemetry[key] = value

        self._snapshot = replace(base, telemetry=telemetry, **changes)
        self._stats.merges += 1
        logger.debug("센서 스냅샷 병합", fields=sorted(fields))
        return self._snapshot

    def get(self) -> Optional[SensorSnapshot]:
        """현재 스냅샷 (없으면 None)."""
        if self._snapshot is None:
            self._stats.misses += 1
        else:
            self._stats.hits += 1
        return self._snapshot

    @property
    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    @property
    def stats(self) -> CacheStats:
        return self._stats
