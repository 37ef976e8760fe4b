"""Hierarchical key-value store contract and the engine's key layout.

Paths are slash-separated and relative to the store root::

    sensorData/<key>          data/<index>, recordCount, lastUpdated, lastTimestamp
    sensorMeta/<key>          lastTimestamp, latestValue, lastUpdated
    weatherData/metadata      run summary
    weatherHistory/<ts>       history snapshot
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

SENSOR_DATA_ROOT = "sensorData"
SENSOR_META_ROOT = "sensorMeta"
METADATA_PATH = "weatherData/metadata"
HISTORY_ROOT = "weatherHistory"


class TreeStore(Protocol):
    def read(self, path: str) -> Optional[Any]: ...

    def read_collection(self, path: str) -> Dict[str, Dict[str, Any]]: ...

    def read_fields(self, path: str, fields: Iterable[str]) -> Dict[str, Any]: ...

    def update(self, updates: Mapping[str, Any]) -> None: ...

    def set(self, path: str, value: Any) -> None: ...


def split_path(path: str) -> List[str]:
    segments = [segment for segment in path.strip("/").split("/")]
    if not segments or any(not segment for segment in segments):
        raise ValueError(f"Invalid store path {path!r}.")
    return segments


def join_path(*parts: Any) -> str:
    return "/".join(str(part).strip("/") for part in parts)


def sensor_data_path(sensor_key: str) -> str:
    return join_path(SENSOR_DATA_ROOT, sensor_key)


def sensor_meta_path(sensor_key: str) -> str:
    return join_path(SENSOR_META_ROOT, sensor_key)


def history_path(timestamp: int) -> str:
    return join_path(HISTORY_ROOT, timestamp)
