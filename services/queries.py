"""Read-side helpers shared by the CLI and the HTTP API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from datastore.base import HISTORY_ROOT, METADATA_PATH, TreeStore, sensor_data_path
from models.records import HistoryEntry, SensorDescriptor, Watermark
from services.watermarks import WatermarkStore


@dataclass(frozen=True)
class SensorStatus:
    sensor: SensorDescriptor
    watermark: Watermark
    record_count: int


def sensor_status(store: TreeStore, sensor: SensorDescriptor) -> SensorStatus:
    header = store.read_fields(sensor_data_path(sensor.key), ("recordCount",))
    return SensorStatus(
        sensor=sensor,
        watermark=WatermarkStore(store).load(sensor.key),
        record_count=int(header.get("recordCount") or 0),
    )


def all_sensor_status(
    store: TreeStore, sensors: Sequence[SensorDescriptor]
) -> List[SensorStatus]:
    watermarks = WatermarkStore(store).load_all()
    rows: List[SensorStatus] = []
    for sensor in sensors:
        header = store.read_fields(sensor_data_path(sensor.key), ("recordCount",))
        rows.append(
            SensorStatus(
                sensor=sensor,
                watermark=watermarks.get(sensor.key, Watermark()),
                record_count=int(header.get("recordCount") or 0),
            )
        )
    return rows


def run_metadata(store: TreeStore) -> Optional[Dict[str, Any]]:
    payload = store.read(METADATA_PATH)
    return payload if isinstance(payload, dict) else None


def recent_history(store: TreeStore, limit: int) -> List[HistoryEntry]:
    """Newest history entries first."""
    entries: List[HistoryEntry] = []
    for key, payload in store.read_collection(HISTORY_ROOT).items():
        try:
            timestamp = int(payload.get("timestamp", key))
        except (TypeError, ValueError):
            continue
        values = payload.get("values") or {}
        entries.append(
            HistoryEntry(
                timestamp=timestamp,
                values={name: float(value) for name, value in values.items()},
            )
        )
    entries.sort(key=lambda entry: entry.timestamp, reverse=True)
    return entries[: max(limit, 0)]
