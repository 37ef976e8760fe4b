from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest

from datastore.realtime_db import MockRealtimeDatabase
from errors import StorageError
from models.records import Reading, Watermark
from services.sensor_log import AppendWriter, read_log_tail


class RecordingStore:
    """Delegates to an in-memory database and records every call."""

    def __init__(self, fail_updates: bool = False) -> None:
        self.inner = MockRealtimeDatabase(name="test")
        self.calls: List[tuple[str, Any]] = []
        self.fail_updates = fail_updates

    def read(self, path: str) -> Optional[Any]:
        self.calls.append(("read", path))
        return self.inner.read(path)

    def read_collection(self, path: str) -> Dict[str, Dict[str, Any]]:
        self.calls.append(("read_collection", path))
        return self.inner.read_collection(path)

    def read_fields(self, path: str, fields: Iterable[str]) -> Dict[str, Any]:
        fields = tuple(fields)
        self.calls.append(("read_fields", (path, fields)))
        return self.inner.read_fields(path, fields)

    def update(self, updates: Mapping[str, Any]) -> None:
        self.calls.append(("update", dict(updates)))
        if self.fail_updates:
            raise StorageError("write rejected")
        self.inner.update(updates)

    def set(self, path: str, value: Any) -> None:
        self.update({path: value})


def _readings(*pairs: tuple[int, float]) -> List[Reading]:
    return [Reading(timestamp=ts, value=v, sensor_key="temp", unit="°C") for ts, v in pairs]


def test_append_writes_at_next_positions_and_advances_watermark() -> None:
    store = RecordingStore()
    store.inner.update({"sensorData/temp/recordCount": 50})
    watermark = Watermark(last_timestamp=700, latest_value=7.0, last_updated=9000)

    result = AppendWriter(store).append("temp", _readings((600, 6.0), (700, 7.0)), watermark)

    assert (result.record_count, result.appended) == (52, 2)
    assert result.watermark == watermark
    log = store.inner.read("sensorData/temp")
    assert log["data"] == {
        "50": {"timestamp": 600, "value": 6.0},
        "51": {"timestamp": 700, "value": 7.0},
    }
    assert log["recordCount"] == 52
    assert log["lastUpdated"] == 9000
    assert log["lastTimestamp"] == 700
    assert log["lastValue"] == 7.0
    assert store.inner.read("sensorMeta/temp") == watermark.to_payload()


def test_append_reads_only_the_log_header_and_writes_once() -> None:
    store = RecordingStore()
    watermark = Watermark(last_timestamp=2, latest_value=2.0, last_updated=1)

    AppendWriter(store).append("temp", _readings((1, 1.0), (2, 2.0)), watermark)

    kinds = [kind for kind, _ in store.calls]
    assert kinds == ["read_fields", "update"]
    _, (path, fields) = store.calls[0]
    assert path == "sensorData/temp"
    assert fields == ("recordCount", "lastTimestamp", "lastValue")
    updates = store.calls[1][1]
    assert list(updates)[-1] == "sensorMeta/temp"


def test_append_skips_readings_already_in_log_after_interrupted_run() -> None:
    store = RecordingStore()
    # Records up to 120 landed but the watermark still says 100.
    store.inner.update(
        {
            "sensorData/temp/data/0": {"timestamp": 110, "value": 1.0},
            "sensorData/temp/data/1": {"timestamp": 120, "value": 2.0},
            "sensorData/temp/recordCount": 2,
            "sensorData/temp/lastTimestamp": 120,
            "sensorMeta/temp": {"lastTimestamp": 100, "latestValue": 0.5, "lastUpdated": 1},
        }
    )
    watermark = Watermark(last_timestamp=130, latest_value=3.0, last_updated=5)

    result = AppendWriter(store).append(
        "temp", _readings((110, 1.0), (120, 2.0), (130, 3.0)), watermark
    )

    assert (result.record_count, result.appended) == (3, 1)
    assert store.inner.read("sensorData/temp/data/2") == {"timestamp": 130, "value": 3.0}
    assert store.inner.read("sensorData/temp/data/3") is None
    assert store.inner.read("sensorMeta/temp/lastTimestamp") == 130


def test_append_with_everything_already_logged_only_advances_watermark() -> None:
    store = RecordingStore()
    store.inner.update(
        {
            "sensorData/temp/data/0": {"timestamp": 110, "value": 1.0},
            "sensorData/temp/recordCount": 1,
            "sensorData/temp/lastTimestamp": 110,
        }
    )
    watermark = Watermark(last_timestamp=110, latest_value=1.0, last_updated=5)

    result = AppendWriter(store).append("temp", _readings((110, 1.0)), watermark)

    assert (result.record_count, result.appended) == (1, 0)
    assert store.inner.read("sensorData/temp/recordCount") == 1
    assert store.inner.read("sensorMeta/temp/lastTimestamp") == 110


def test_append_empty_increment_writes_nothing() -> None:
    store = RecordingStore()
    store.inner.update({"sensorData/temp/recordCount": 4})

    result = AppendWriter(store).append("temp", [], Watermark())

    assert (result.record_count, result.appended, result.watermark) == (4, 0, None)
    assert [kind for kind, _ in store.calls] == ["read_fields"]


def test_append_failure_propagates_and_leaves_sensor_untouched() -> None:
    store = RecordingStore(fail_updates=True)
    store.inner.update({"sensorData/temp/recordCount": 5})

    with pytest.raises(StorageError):
        AppendWriter(store).append(
            "temp", _readings((10, 1.0)), Watermark(last_timestamp=10, latest_value=1.0)
        )

    assert store.inner.read("sensorData/temp") == {"recordCount": 5}
    assert store.inner.read("sensorMeta/temp") is None


def test_appends_keep_log_sorted_across_calls() -> None:
    store = RecordingStore()
    writer = AppendWriter(store)

    writer.append("temp", _readings((1, 1.0), (2, 2.0)), Watermark(2, 2.0, 1))
    writer.append("temp", _readings((3, 3.0)), Watermark(3, 3.0, 2))

    timestamps = [entry["timestamp"] for entry in read_log_tail(store.inner, "temp", 10)]
    assert timestamps == [1, 2, 3]


def test_read_log_tail_returns_newest_entries() -> None:
    db = MockRealtimeDatabase(name="test")
    db.update(
        {
            **{f"sensorData/temp/data/{i}": {"timestamp": i, "value": float(i)} for i in range(5)},
            "sensorData/temp/recordCount": 5,
        }
    )

    assert [e["timestamp"] for e in read_log_tail(db, "temp", 2)] == [3, 4]
    assert read_log_tail(db, "missing", 2) == []


def _logged_through_500(store: RecordingStore) -> None:
    store.inner.update(
        {
            "sensorData/temp/data/0": {"timestamp": 400, "value": 4.0},
            "sensorData/temp/data/1": {"timestamp": 500, "value": 5.0},
            "sensorData/temp/recordCount": 2,
            "sensorData/temp/lastTimestamp": 500,
            "sensorData/temp/lastValue": 5.0,
            "sensorMeta/temp": {"lastTimestamp": 500, "latestValue": 5.0, "lastUpdated": 1},
        }
    )


def test_append_never_moves_watermark_behind_log_tail() -> None:
    store = RecordingStore()
    _logged_through_500(store)
    # Merged against an unreadable watermark, so it only reaches 100.
    stale = Watermark(last_timestamp=100, latest_value=1.0, last_updated=9)

    result = AppendWriter(store).append("temp", _readings((100, 1.0)), stale)

    assert (result.record_count, result.appended) == (2, 0)
    assert result.watermark == Watermark(last_timestamp=500, latest_value=5.0, last_updated=9)
    assert store.inner.read("sensorMeta/temp") == {
        "lastTimestamp": 500,
        "latestValue": 5.0,
        "lastUpdated": 9,
    }
    assert store.inner.read("sensorData/temp/recordCount") == 2


def test_append_leaves_watermark_alone_when_tail_value_unknown() -> None:
    store = RecordingStore()
    _logged_through_500(store)
    store.inner.update({"sensorData/temp/lastValue": None})

    result = AppendWriter(store).append(
        "temp", _readings((100, 1.0)), Watermark(last_timestamp=100, latest_value=1.0)
    )

    assert result.watermark is None
    assert [kind for kind, _ in store.calls] == ["read_fields"]
    assert store.inner.read("sensorMeta/temp/lastTimestamp") == 500


def test_read_log_tail_reads_only_the_requested_positions() -> None:
    store = RecordingStore()
    store.inner.update(
        {
            **{f"sensorData/temp/data/{i}": {"timestamp": i, "value": float(i)} for i in range(6)},
            "sensorData/temp/recordCount": 6,
        }
    )

    entries = read_log_tail(store, "temp", 2)

    assert [e["timestamp"] for e in entries] == [4, 5]
    assert store.calls == [
        ("read_fields", ("sensorData/temp", ("recordCount",))),
        ("read", "sensorData/temp/data/4"),
        ("read", "sensorData/temp/data/5"),
    ]
