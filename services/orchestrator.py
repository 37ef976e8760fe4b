"""Run orchestration: one sequential pass over every configured sensor."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from clients.sensor_api import SensorApiClient, build_client
from datastore.base import METADATA_PATH, TreeStore, history_path
from errors import FatalMetadataError, StorageError
from models.records import (
    HistoryEntry,
    RunSummary,
    SensorDescriptor,
    SensorOutcome,
    Watermark,
)
from services.merger import MergeEngine
from services.sensor_log import AppendWriter
from services.watermarks import WatermarkStore
from settings import Settings

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RunReport:
    summary: RunSummary
    outcomes: List[SensorOutcome] = field(default_factory=list)
    history_written: bool = False


class SyncOrchestrator:
    """Fetches, merges and appends each sensor in catalog order.

    Sensors are never processed concurrently: requests share one upstream
    rate-limit budget, and each sensor log assumes a single writer.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        sensors: Sequence[SensorDescriptor],
        client: SensorApiClient,
        store: TreeStore,
        merger: Optional[MergeEngine] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings
        self.sensors = tuple(sensors)
        self.client = client
        self.store = store
        self.merger = merger or MergeEngine()
        self.watermarks = WatermarkStore(store)
        self.writer = AppendWriter(store, self.merger)
        self._sleep = sleep
        self._clock = clock

    def close(self) -> None:
        self.client.close()

    def run(self) -> RunReport:
        """Synchronize every sensor, then persist the run summary and history.

        Raises :class:`errors.FatalMetadataError` when the summary cannot be
        written; every per-sensor failure is absorbed into the report.
        """
        end_time = self._clock()
        start_time = end_time - self.settings.lookback_ms
        watermarks = self.watermarks.load_all()
        summary = RunSummary(
            start_time=start_time,
            end_time=end_time,
            fetched_at=end_time,
            sensor_count=len(self.sensors),
        )
        report = RunReport(summary=summary)

        pacing = self.settings.pacing_ms / 1000.0
        for index, sensor in enumerate(self.sensors):
            logger.info(
                "Syncing sensor [%d/%d] %s",
                index + 1,
                len(self.sensors),
                sensor.name,
                extra={"sensor_key": sensor.key},
            )
            outcome = self._sync_sensor(
                sensor, start_time, end_time, watermarks.get(sensor.key, Watermark())
            )
            report.outcomes.append(outcome)
            self._accumulate(summary, outcome)
            if pacing > 0 and index < len(self.sensors) - 1:
                self._sleep(pacing)

        summary.fetched_at = self._clock()
        logger.info(
            "Synced %d/%d sensors",
            summary.successful_sensors,
            summary.sensor_count,
            extra={"new_records": summary.total_new_records},
        )
        self._write_metadata(summary)
        report.history_written = self._write_history(summary)
        return report

    def _sync_sensor(
        self,
        sensor: SensorDescriptor,
        start_time: int,
        end_time: int,
        watermark: Watermark,
    ) -> SensorOutcome:
        result = self.client.fetch(sensor, start_time, end_time)
        outcome = SensorOutcome(sensor_key=sensor.key, fetched=len(result.readings))
        if not result.ok:
            outcome.error = result.error
            outcome.latest_value = watermark.latest_value
            return outcome

        merged = self.merger.merge(result.readings, watermark, now=self._clock())
        latest_value = merged.latest_value
        if merged.increment:
            try:
                appended = self.writer.append(sensor.key, merged.increment, merged.watermark)
            except StorageError as exc:
                logger.error(
                    "Failed to append readings, watermark left unchanged",
                    extra={"sensor_key": sensor.key, "error": str(exc)},
                )
                outcome.error = str(exc)
                outcome.latest_value = watermark.latest_value
                return outcome
            outcome.record_count = appended.record_count
            outcome.appended = appended.appended
            if appended.watermark is None:
                latest_value = watermark.latest_value
            elif appended.watermark is not merged.watermark:
                latest_value = appended.watermark.latest_value
        else:
            logger.info("No new readings", extra={"sensor_key": sensor.key})

        outcome.latest_value = latest_value
        return outcome

    @staticmethod
    def _accumulate(summary: RunSummary, outcome: SensorOutcome) -> None:
        if outcome.succeeded:
            summary.successful_sensors += 1
            summary.total_new_records += outcome.appended
        else:
            summary.failed_sensors.append(outcome.sensor_key)
        if outcome.latest_value is not None:
            summary.latest_values[outcome.sensor_key] = outcome.latest_value

    def _write_metadata(self, summary: RunSummary) -> None:
        try:
            self.store.set(METADATA_PATH, summary.to_payload())
        except StorageError as exc:
            logger.error(
                "Failed to write run metadata",
                extra={"path": METADATA_PATH, "error": str(exc)},
            )
            raise FatalMetadataError(f"Failed to write run metadata: {exc}") from exc

    def _write_history(self, summary: RunSummary) -> bool:
        entry = HistoryEntry(timestamp=self._clock(), values=dict(summary.latest_values))
        path = history_path(entry.timestamp)
        try:
            self.store.set(path, entry.to_payload())
        except StorageError as exc:
            logger.warning(
                "Failed to save history entry",
                extra={"path": path, "error": str(exc)},
            )
            return False
        return True


def build_orchestrator(
    settings: Settings, sensors: Sequence[SensorDescriptor], store: TreeStore
) -> SyncOrchestrator:
    """Factory that wires the orchestrator with the configured upstream client."""
    return SyncOrchestrator(
        settings=settings,
        sensors=sensors,
        client=build_client(settings),
        store=store,
    )
