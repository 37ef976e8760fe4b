from __future__ import annotations

import copy
import json
import os
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, Mapping, Optional

from datastore.base import split_path
from errors import StorageError
from settings import get_settings


class MockRealtimeDatabase:
    """In-process JSON tree with optional file persistence.

    Multi-location updates are staged on a copy of the tree and only swapped
    in once the file write succeeded, so a failed update leaves nothing behind.
    Writing ``None`` at a path removes it.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._root: Dict[str, Any] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def read(self, path: str) -> Optional[Any]:
        with self._lock:
            node = self._lookup(self._root, split_path(path))
            return copy.deepcopy(node)

    def read_collection(self, path: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            node = self._lookup(self._root, split_path(path))
            if not isinstance(node, dict):
                return {}
            return {
                key: copy.deepcopy(child)
                for key, child in node.items()
                if isinstance(child, dict)
            }

    def read_fields(self, path: str, fields: Iterable[str]) -> Dict[str, Any]:
        with self._lock:
            node = self._lookup(self._root, split_path(path))
            if not isinstance(node, dict):
                return {}
            return {
                name: copy.deepcopy(node[name]) for name in fields if name in node
            }

    def update(self, updates: Mapping[str, Any]) -> None:
        parsed = [(split_path(path), value) for path, value in updates.items()]
        with self._lock:
            staged = copy.deepcopy(self._root)
            for segments, value in parsed:
                self._assign(staged, segments, copy.deepcopy(value))
            self._persist(staged)
            self._root = staged

    def set(self, path: str, value: Any) -> None:
        self.update({path: value})

    @staticmethod
    def _lookup(root: Dict[str, Any], segments: list[str]) -> Optional[Any]:
        node: Any = root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    @staticmethod
    def _assign(root: Dict[str, Any], segments: list[str], value: Any) -> None:
        node = root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[segment] = child
            node = child
        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = value

    def _persist(self, tree: Dict[str, Any]) -> None:
        if not self.persistence_path:
            return
        tmp_path = self.persistence_path.with_name(self.persistence_path.name + ".tmp")
        try:
            tmp_path.write_text(json.dumps(tree, indent=2, sort_keys=True))
            os.replace(tmp_path, self.persistence_path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(
                f"Failed to persist database {self.name!r} to {self.persistence_path}: {exc}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(
                f"Failed to load database {self.name!r} from {self.persistence_path}: {exc}"
            ) from exc

        if isinstance(data, dict):
            self._root = data


@lru_cache
def build_default_database(path: Optional[str] = None) -> MockRealtimeDatabase:
    settings = get_settings()
    db_path = settings.store_persistence_path if path is None else path
    persistence = Path(db_path) if db_path else None
    return MockRealtimeDatabase(name="weather-sync", persistence_path=persistence)
