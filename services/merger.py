"""Watermark filtering of freshly fetched readings."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from models.records import MergeResult, Reading, Watermark


class MergeEngine:
    """Pure merge component that can be unit tested in isolation."""

    def filter_new(self, readings: Iterable[Reading], last_timestamp: int) -> List[Reading]:
        """Readings strictly newer than ``last_timestamp``, ascending.

        Equal timestamps collapse to the last occurrence.
        """
        by_timestamp: Dict[int, Reading] = {}
        for reading in readings:
            if reading.timestamp > last_timestamp:
                by_timestamp[reading.timestamp] = reading
        return [by_timestamp[timestamp] for timestamp in sorted(by_timestamp)]

    def merge(
        self, readings: List[Reading], watermark: Watermark, now: int
    ) -> MergeResult:
        increment = self.filter_new(readings, watermark.last_timestamp)
        if increment:
            newest = increment[-1]
            advanced = Watermark(
                last_timestamp=newest.timestamp,
                latest_value=newest.value,
                last_updated=now,
            )
            return MergeResult(increment=increment, watermark=advanced, latest_value=newest.value)

        return MergeResult(
            increment=[],
            watermark=watermark,
            latest_value=self._current_value(readings, watermark),
        )

    @staticmethod
    def _current_value(readings: Iterable[Reading], watermark: Watermark) -> Optional[float]:
        newest: Optional[Reading] = None
        for reading in readings:
            if newest is None or reading.timestamp >= newest.timestamp:
                newest = reading
        if newest is None:
            return watermark.latest_value
        # An upstream window that ends before the watermark is stale: keep the
        # stored value rather than the last fetched one.
        if watermark.latest_value is not None and newest.timestamp < watermark.last_timestamp:
            return watermark.latest_value
        return newest.value
