"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class SensorDescriptor:
    """Static catalog entry for one upstream sensor."""

    key: str
    serial: str
    name: str
    unit: str


@dataclass(frozen=True, slots=True)
class Reading:
    """A single observation; ``timestamp`` is epoch milliseconds."""

    timestamp: int
    value: float
    sensor_key: str
    unit: str

    def to_payload(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "value": self.value}


@dataclass(frozen=True, slots=True)
class Watermark:
    """Marker of the newest reading already persisted for a sensor."""

    last_timestamp: int = 0
    latest_value: Optional[float] = None
    last_updated: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "Watermark":
        if not payload:
            return cls()
        latest = payload.get("latestValue")
        updated = payload.get("lastUpdated")
        return cls(
            last_timestamp=int(payload.get("lastTimestamp") or 0),
            latest_value=float(latest) if latest is not None else None,
            last_updated=int(updated) if updated is not None else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "lastTimestamp": self.last_timestamp,
            "latestValue": self.latest_value,
            "lastUpdated": self.last_updated,
        }


@dataclass(slots=True)
class FetchResult:
    sensor_key: str
    readings: List[Reading] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Strictly-new readings plus the watermark to persist with them."""

    increment: List[Reading]
    watermark: Watermark
    latest_value: Optional[float]


@dataclass(slots=True)
class SensorOutcome:
    """What happened to one sensor during a run."""

    sensor_key: str
    fetched: int = 0
    appended: int = 0
    record_count: Optional[int] = None
    latest_value: Optional[float] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class RunSummary:
    start_time: int
    end_time: int
    fetched_at: int
    sensor_count: int
    successful_sensors: int = 0
    total_new_records: int = 0
    latest_values: Dict[str, float] = field(default_factory=dict)
    failed_sensors: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "timeRange": {"startTime": self.start_time, "endTime": self.end_time},
            "fetchedAt": self.fetched_at,
            "sensorCount": self.sensor_count,
            "successfulSensors": self.successful_sensors,
            "totalNewRecords": self.total_new_records,
            "latestValues": dict(self.latest_values),
            "failedSensors": list(self.failed_sensors),
        }


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    timestamp: int
    values: Dict[str, float]

    def to_payload(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "values": dict(self.values)}


@dataclass(frozen=True, slots=True)
class AppendResult:
    """Outcome of one append: the new log size, how many readings landed,
    and the watermark that was persisted (``None`` when it was left alone)."""

    record_count: int
    appended: int
    watermark: Optional[Watermark]
