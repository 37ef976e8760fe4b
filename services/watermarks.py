from __future__ import annotations

import logging
from typing import Dict

from datastore.base import SENSOR_META_ROOT, TreeStore, sensor_meta_path
from errors import StorageError
from models.records import Watermark

logger = logging.getLogger(__name__)


class WatermarkStore:
    """Reads the per-sensor watermarks kept under ``sensorMeta``.

    Writes happen in :class:`services.sensor_log.AppendWriter`, together with
    the records they describe.
    """

    def __init__(self, store: TreeStore) -> None:
        self.store = store

    def load_all(self) -> Dict[str, Watermark]:
        """Bulk-read every watermark; an unreadable store yields no watermarks."""
        try:
            raw = self.store.read_collection(SENSOR_META_ROOT)
        except StorageError as exc:
            logger.warning(
                "Could not read watermarks, starting from empty state",
                extra={"path": SENSOR_META_ROOT, "error": str(exc)},
            )
            return {}

        watermarks: Dict[str, Watermark] = {}
        for sensor_key, payload in raw.items():
            try:
                watermarks[sensor_key] = Watermark.from_payload(payload)
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "Ignoring malformed watermark",
                    extra={"sensor_key": sensor_key, "error": str(exc)},
                )
        return watermarks

    def load(self, sensor_key: str) -> Watermark:
        payload = self.store.read(sensor_meta_path(sensor_key))
        return Watermark.from_payload(payload if isinstance(payload, dict) else None)
