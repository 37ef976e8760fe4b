from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from errors import ConfigError


_API_TOKEN_ENV = "LICOR_API_TOKEN"
_DEVICE_SERIAL_ENV = "LICOR_DEVICE_SERIAL"
_BASE_URL_ENV = "LICOR_BASE_URL"
_CATALOG_PATH_ENV = "SENSOR_CATALOG_PATH"
_LOOKBACK_ENV = "SYNC_LOOKBACK_HOURS"
_MAX_RETRIES_ENV = "SYNC_MAX_RETRIES"
_BACKOFF_BASE_ENV = "SYNC_BACKOFF_BASE_MS"
_RETRY_DELAY_ENV = "SYNC_RETRY_DELAY_MS"
_PACING_ENV = "SYNC_PACING_MS"
_HTTP_TIMEOUT_ENV = "SYNC_HTTP_TIMEOUT"
_STORE_BACKEND_ENV = "STORE_BACKEND"
_STORE_PATH_ENV = "MOCK_RTDB_PERSISTENCE_PATH"
_FIREBASE_PROJECT_ENV = "FIREBASE_PROJECT_ID"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_BASE_URL = "https://api.licor.cloud/v2"
STORE_BACKENDS = ("mock", "firestore")


@dataclass(frozen=True)
class Settings:
    api_token: Optional[str]
    device_serial: Optional[str]
    api_base_url: str = DEFAULT_BASE_URL
    sensor_catalog_path: Optional[str] = None
    lookback_hours: float = 2.0
    max_retries: int = 3
    backoff_base_ms: int = 2000
    retry_delay_ms: int = 1000
    pacing_ms: int = 200
    http_timeout: float = 30.0
    store_backend: str = "mock"
    store_persistence_path: Optional[str] = "./tmp/realtime_db.json"
    firebase_project_id: Optional[str] = None
    log_level: str = "INFO"

    def validate(self, require_upstream: bool = True) -> None:
        """Raise ConfigError listing every missing or invalid required value.

        Read-only tools pass ``require_upstream=False`` since they never call
        the sensor API.
        """
        missing: list[str] = []
        if require_upstream and not self.api_token:
            missing.append(_API_TOKEN_ENV)
        if require_upstream and not self.device_serial:
            missing.append(_DEVICE_SERIAL_ENV)
        if self.store_backend == "firestore" and not self.firebase_project_id:
            missing.append(_FIREBASE_PROJECT_ENV)
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
        if self.store_backend not in STORE_BACKENDS:
            raise ConfigError(
                f"{_STORE_BACKEND_ENV} must be one of {', '.join(STORE_BACKENDS)}, "
                f"got {self.store_backend!r}"
            )

    @property
    def lookback_ms(self) -> int:
        return int(self.lookback_hours * 60 * 60 * 1000)


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_non_negative_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        api_token=_read_optional_env(_API_TOKEN_ENV, None),
        device_serial=_read_optional_env(_DEVICE_SERIAL_ENV, None),
        api_base_url=_read_str_env(_BASE_URL_ENV, DEFAULT_BASE_URL).rstrip("/"),
        sensor_catalog_path=_read_optional_env(_CATALOG_PATH_ENV, None),
        lookback_hours=_read_positive_float(_LOOKBACK_ENV, 2.0),
        max_retries=_read_positive_int(_MAX_RETRIES_ENV, 3),
        backoff_base_ms=_read_non_negative_int(_BACKOFF_BASE_ENV, 2000),
        retry_delay_ms=_read_non_negative_int(_RETRY_DELAY_ENV, 1000),
        pacing_ms=_read_non_negative_int(_PACING_ENV, 200),
        http_timeout=_read_positive_float(_HTTP_TIMEOUT_ENV, 30.0),
        store_backend=_read_str_env(_STORE_BACKEND_ENV, "mock").lower(),
        store_persistence_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/realtime_db.json"),
        firebase_project_id=_read_optional_env(_FIREBASE_PROJECT_ENV, None),
        log_level=_read_log_level("INFO"),
    )
