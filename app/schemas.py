"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class WatermarkView(BaseModel):
    """Newest persisted reading for a sensor."""

    last_timestamp: int = Field(0, ge=0, description="Epoch milliseconds, 0 if nothing stored.")
    latest_value: Optional[float] = None
    last_updated: Optional[int] = None


class SensorStatusView(BaseModel):
    key: str
    serial: str
    name: str
    unit: str
    record_count: int = Field(..., ge=0)
    watermark: WatermarkView


class ReadingView(BaseModel):
    timestamp: int
    value: float


class SensorReadingsView(BaseModel):
    key: str
    unit: str
    record_count: int = Field(..., ge=0)
    readings: List[ReadingView] = Field(default_factory=list)


class TimeRange(BaseModel):
    start_time: int = Field(..., alias="startTime")
    end_time: int = Field(..., alias="endTime")


class RunMetadataView(BaseModel):
    """Summary written at the end of the last completed run."""

    time_range: TimeRange = Field(..., alias="timeRange")
    fetched_at: int = Field(..., alias="fetchedAt")
    sensor_count: int = Field(..., alias="sensorCount", ge=0)
    successful_sensors: int = Field(0, alias="successfulSensors", ge=0)
    total_new_records: int = Field(0, alias="totalNewRecords", ge=0)
    latest_values: Dict[str, float] = Field(default_factory=dict, alias="latestValues")
    failed_sensors: List[str] = Field(default_factory=list, alias="failedSensors")


class HistoryEntryView(BaseModel):
    timestamp: int
    values: Dict[str, float] = Field(default_factory=dict)
