"""Sensor catalog: which upstream sensors a run synchronizes, in order."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Tuple

from errors import ConfigError
from models.records import SensorDescriptor

DEFAULT_SENSORS: Tuple[SensorDescriptor, ...] = (
    SensorDescriptor("barometricPressure", "21956394-1", "Barometric Pressure", "mbar"),
    SensorDescriptor("precipitation", "21987752-1", "Precipitation", "mm"),
    SensorDescriptor("rainfall24hr", "21987752-2", "Rainfall (24-Hr)", "mm"),
    SensorDescriptor("rainfallWeekly", "21987752-3", "Rainfall (Weekly)", "mm"),
    SensorDescriptor("rainfallMonthly", "21987752-4", "Rainfall (Monthly)", "mm"),
    SensorDescriptor("waterLevel", "22054593-1", "Water Level", "m"),
    SensorDescriptor("diffPressure", "22054593-2", "Diff Pressure", "kPa"),
    SensorDescriptor("waterTemperature", "22054593-3", "Water Temperature", "°C"),
    SensorDescriptor("waterBaroPressure", "22054593-4", "Baro Pressure (Water)", "kPa"),
    SensorDescriptor("solarRadiation", "22430939-1", "Solar Radiation", "W/m²"),
    SensorDescriptor("temperature", "22442709-1", "Air Temperature", "°C"),
    SensorDescriptor("humidity", "22442709-2", "Relative Humidity", "%"),
    SensorDescriptor("dewPoint", "22442709-3", "Dew Point", "°C"),
    SensorDescriptor("windSpeed", "22447153-1", "Wind Speed", "m/s"),
    SensorDescriptor("gustSpeed", "22447153-2", "Gust Speed", "m/s"),
    SensorDescriptor("windDirection", "22447153-3", "Wind Direction", "°"),
    SensorDescriptor("evapotranspiration", "22462095-1", "Reference ET", "mm"),
)


def load_catalog(path: Optional[str] = None) -> Tuple[SensorDescriptor, ...]:
    """Return the configured sensors in file order, or the built-in catalog.

    The file is a JSON object mapping sensor key to ``{"sn", "name", "unit"}``.
    """
    if path is None:
        return DEFAULT_SENSORS

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read sensor catalog {path}: {exc}") from exc

    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Sensor catalog {path} must be a non-empty JSON object.")

    sensors: list[SensorDescriptor] = []
    for key, entry in raw.items():
        if not isinstance(entry, dict) or not entry.get("sn"):
            raise ConfigError(f"Sensor {key!r} in {path} is missing its serial number 'sn'.")
        sensors.append(
            SensorDescriptor(
                key=key,
                serial=str(entry["sn"]),
                name=str(entry.get("name") or key),
                unit=str(entry.get("unit") or ""),
            )
        )
    return tuple(sensors)
