"""HTTP route definitions for the read-only API."""

from __future__ import annotations

from typing import Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    HistoryEntryView,
    ReadingView,
    RunMetadataView,
    SensorReadingsView,
    SensorStatusView,
    WatermarkView,
)
from datastore.base import TreeStore
from datastore.factory import build_store
from errors import StorageError
from models.records import SensorDescriptor
from sensors import load_catalog
from services.queries import (
    SensorStatus,
    all_sensor_status,
    recent_history,
    run_metadata,
    sensor_status,
)
from services.sensor_log import read_log_tail
from settings import get_settings

router = APIRouter()


def get_store() -> TreeStore:
    return build_store(get_settings())


def get_sensors() -> Sequence[SensorDescriptor]:
    return load_catalog(get_settings().sensor_catalog_path)


def _find_sensor(sensors: Sequence[SensorDescriptor], key: str) -> SensorDescriptor:
    for sensor in sensors:
        if sensor.key == key:
            return sensor
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Sensor {key!r} is not configured.",
    )


def _store_unavailable(exc: StorageError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Backing store unavailable: {exc}",
    )


def _status_view(row: SensorStatus) -> SensorStatusView:
    return SensorStatusView(
        key=row.sensor.key,
        serial=row.sensor.serial,
        name=row.sensor.name,
        unit=row.sensor.unit,
        record_count=row.record_count,
        watermark=WatermarkView(
            last_timestamp=row.watermark.last_timestamp,
            latest_value=row.watermark.latest_value,
            last_updated=row.watermark.last_updated,
        ),
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/sensors",
    response_model=list[SensorStatusView],
    summary="List configured sensors with their watermarks.",
)
async def list_sensors(
    store: TreeStore = Depends(get_store),
    sensors: Sequence[SensorDescriptor] = Depends(get_sensors),
) -> list[SensorStatusView]:
    try:
        rows = all_sensor_status(store, sensors)
    except StorageError as exc:
        raise _store_unavailable(exc) from exc
    return [_status_view(row) for row in rows]


@router.get(
    "/sensors/{sensor_key}",
    response_model=SensorStatusView,
    summary="Watermark and log size for one sensor.",
)
async def get_sensor(
    sensor_key: str,
    store: TreeStore = Depends(get_store),
    sensors: Sequence[SensorDescriptor] = Depends(get_sensors),
) -> SensorStatusView:
    sensor = _find_sensor(sensors, sensor_key)
    try:
        row = sensor_status(store, sensor)
    except StorageError as exc:
        raise _store_unavailable(exc) from exc
    return _status_view(row)


@router.get(
    "/sensors/{sensor_key}/readings",
    response_model=SensorReadingsView,
    summary="Newest readings from a sensor log, oldest first.",
)
async def get_sensor_readings(
    sensor_key: str,
    limit: int = Query(100, ge=1, le=5000),
    store: TreeStore = Depends(get_store),
    sensors: Sequence[SensorDescriptor] = Depends(get_sensors),
) -> SensorReadingsView:
    sensor = _find_sensor(sensors, sensor_key)
    try:
        row = sensor_status(store, sensor)
        entries = read_log_tail(store, sensor.key, limit)
    except StorageError as exc:
        raise _store_unavailable(exc) from exc
    return SensorReadingsView(
        key=sensor.key,
        unit=sensor.unit,
        record_count=row.record_count,
        readings=[ReadingView(timestamp=e["timestamp"], value=e["value"]) for e in entries],
    )


@router.get(
    "/metadata",
    response_model=RunMetadataView,
    response_model_by_alias=True,
    summary="Summary of the last completed run.",
)
async def get_metadata(store: TreeStore = Depends(get_store)) -> RunMetadataView:
    try:
        payload = run_metadata(store)
    except StorageError as exc:
        raise _store_unavailable(exc) from exc
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No run has completed yet.",
        )
    return RunMetadataView.model_validate(payload)


@router.get(
    "/history",
    response_model=list[HistoryEntryView],
    summary="Newest history snapshots first.",
)
async def get_history(
    limit: int = Query(24, ge=1, le=1000),
    store: TreeStore = Depends(get_store),
) -> list[HistoryEntryView]:
    try:
        entries = recent_history(store, limit)
    except StorageError as exc:
        raise _store_unavailable(exc) from exc
    return [HistoryEntryView(timestamp=e.timestamp, values=e.values) for e in entries]
