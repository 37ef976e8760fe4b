"""Append-only per-sensor logs under ``sensorData/<key>``."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from datastore.base import TreeStore, join_path, sensor_data_path, sensor_meta_path
from models.records import AppendResult, Reading, Watermark
from services.merger import MergeEngine

logger = logging.getLogger(__name__)

LOG_HEADER_FIELDS = ("recordCount", "lastTimestamp", "lastValue")


class AppendWriter:
    """Writes increments at the next log positions and advances the watermark.

    Only the log header (``recordCount``, ``lastTimestamp``, ``lastValue``) is
    read before writing, never the log itself.  The caller must be the only
    writer for the sensor: reading the count and writing at ``count + i`` is
    not safe against a concurrent writer.
    """

    def __init__(self, store: TreeStore, merger: Optional[MergeEngine] = None) -> None:
        self.store = store
        self.merger = merger or MergeEngine()

    def read_header(self, sensor_key: str) -> tuple[int, int, Optional[float]]:
        header = self.store.read_fields(sensor_data_path(sensor_key), LOG_HEADER_FIELDS)
        last_value = header.get("lastValue")
        return (
            int(header.get("recordCount") or 0),
            int(header.get("lastTimestamp") or 0),
            float(last_value) if last_value is not None else None,
        )

    def append(
        self, sensor_key: str, increment: Sequence[Reading], watermark: Watermark
    ) -> AppendResult:
        """Persist ``increment`` and ``watermark``.

        The persisted watermark never falls behind the log tail: when every
        reading is already logged and ``watermark`` is older than the tail, the
        tail itself becomes the watermark, or the stored one is left untouched
        if the header has no value for it.

        Raises :class:`errors.StorageError` when the store cannot be read or
        written, in which case nothing about the sensor has changed.
        """
        record_count, tail_timestamp, tail_value = self.read_header(sensor_key)
        if not increment:
            return AppendResult(record_count=record_count, appended=0, watermark=None)

        pending = self.merger.filter_new(increment, tail_timestamp)
        if len(pending) < len(increment):
            logger.warning(
                "Skipping readings already present in the log",
                extra={
                    "sensor_key": sensor_key,
                    "reason": f"log tail at {tail_timestamp}",
                    "new_records": len(pending),
                },
            )

        log_path = sensor_data_path(sensor_key)
        updates: Dict[str, Any] = {}
        for offset, reading in enumerate(pending):
            updates[join_path(log_path, "data", record_count + offset)] = reading.to_payload()
        new_count = record_count + len(pending)

        persisted: Optional[Watermark] = watermark
        if pending:
            updates[join_path(log_path, "recordCount")] = new_count
            updates[join_path(log_path, "lastUpdated")] = watermark.last_updated
            updates[join_path(log_path, "lastTimestamp")] = pending[-1].timestamp
            updates[join_path(log_path, "lastValue")] = pending[-1].value
        elif watermark.last_timestamp < tail_timestamp:
            persisted = (
                Watermark(
                    last_timestamp=tail_timestamp,
                    latest_value=tail_value,
                    last_updated=watermark.last_updated,
                )
                if tail_value is not None
                else None
            )
            logger.warning(
                "Watermark behind log tail, not moving it backwards",
                extra={"sensor_key": sensor_key, "reason": f"log tail at {tail_timestamp}"},
            )

        # Records precede the watermark for stores that apply updates in order.
        if persisted is not None:
            updates[sensor_meta_path(sensor_key)] = persisted.to_payload()
        if updates:
            self.store.update(updates)
        logger.info(
            "Appended readings",
            extra={
                "sensor_key": sensor_key,
                "new_records": len(pending),
                "record_count": new_count,
            },
        )
        return AppendResult(record_count=new_count, appended=len(pending), watermark=persisted)


def read_log_tail(store: TreeStore, sensor_key: str, limit: int) -> List[Dict[str, Any]]:
    """Return up to ``limit`` of the newest log entries, oldest first.

    Entries are addressed by position from the record count, one point read
    each, so the cost does not grow with the log.
    """
    log_path = sensor_data_path(sensor_key)
    header = store.read_fields(log_path, ("recordCount",))
    record_count = int(header.get("recordCount") or 0)
    if record_count == 0 or limit <= 0:
        return []

    entries: List[Dict[str, Any]] = []
    for index in range(max(record_count - limit, 0), record_count):
        entry = store.read(join_path(log_path, "data", index))
        if isinstance(entry, dict):
            entries.append(entry)
    return entries
