"""HTTP client for the LI-COR cloud sensor data API."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from errors import FetchError, RateLimited, TransientFetchError
from models.records import FetchResult, Reading, SensorDescriptor
from settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry schedule; delays are a function of the attempt number only."""

    max_retries: int = 3
    backoff_base_ms: int = 2000
    retry_delay_ms: int = 1000

    def rate_limit_delay(self, attempt: int) -> float:
        return self.backoff_base_ms * (2 ** attempt) / 1000.0

    def failure_delay(self, attempt: int) -> float:
        return self.retry_delay_ms / 1000.0


class SensorApiClient:

    def __init__(
        self,
        *,
        base_url: str,
        api_token: str,
        device_serial: str,
        policy: RetryPolicy | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.device_serial = device_serial
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {api_token}",
            },
        )

    def close(self) -> None:
        self._client.close()

    def fetch(
        self,
        sensor: SensorDescriptor,
        window_start: int,
        window_end: int,
        max_retries: Optional[int] = None,
    ) -> FetchResult:
        """Return every reading upstream reports for ``sensor`` in the window.

        Readings come back unsorted and unfiltered.  Upstream failures never
        raise: once the attempts are used up the result carries the last error
        and no readings.
        """
        attempts = self.policy.max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValueError("max_retries must be at least 1.")

        params = {
            "deviceSerialNumber": self.device_serial,
            "sensorSerialNumber": sensor.serial,
            "startTime": str(window_start),
            "endTime": str(window_end),
        }
        last_error: FetchError | None = None
        for attempt in range(attempts):
            try:
                readings = self._request_once(sensor, params)
            except RateLimited as exc:
                last_error = exc
                delay = self.policy.rate_limit_delay(attempt)
                logger.warning(
                    "Rate limited by upstream",
                    extra={
                        "sensor_key": sensor.key,
                        "attempt": attempt + 1,
                        "delay_ms": int(delay * 1000),
                        "status_code": exc.status_code,
                    },
                )
            except TransientFetchError as exc:
                last_error = exc
                delay = self.policy.failure_delay(attempt)
                logger.warning(
                    "Fetch attempt failed",
                    extra={
                        "sensor_key": sensor.key,
                        "attempt": attempt + 1,
                        "delay_ms": int(delay * 1000),
                        "status_code": exc.status_code,
                        "reason": str(exc),
                    },
                )
            else:
                logger.debug(
                    "Fetched readings",
                    extra={"sensor_key": sensor.key, "record_count": len(readings)},
                )
                return FetchResult(sensor_key=sensor.key, readings=readings)

            if attempt < attempts - 1:
                self._sleep(delay)

        logger.error(
            "Giving up on sensor after %d attempt(s)",
            attempts,
            extra={"sensor_key": sensor.key, "reason": str(last_error)},
        )
        return FetchResult(sensor_key=sensor.key, readings=[], error=str(last_error))

    def _request_once(
        self, sensor: SensorDescriptor, params: Dict[str, str]
    ) -> List[Reading]:
        try:
            response = self._client.get("/data", params=params)
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 429:
            raise RateLimited()
        if not response.is_success:
            raise TransientFetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientFetchError("Upstream returned a non-JSON body") from exc

        return [
            Reading(timestamp=timestamp, value=value, sensor_key=sensor.key, unit=sensor.unit)
            for timestamp, value in _extract_records(payload)
        ]


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _extract_records(payload: Any) -> List[tuple[int, float]]:
    # Shape: {"sensors": [{"data": [{"records": [[ts, value], ...]}]}]}
    if not isinstance(payload, dict):
        return []
    sensor = _first(payload.get("sensors"))
    series = _first(sensor.get("data")) if isinstance(sensor, dict) else None
    records = series.get("records") if isinstance(series, dict) else None
    if not isinstance(records, list):
        return []

    pairs: List[tuple[int, float]] = []
    for record in records:
        if not isinstance(record, (list, tuple)) or len(record) < 2:
            continue
        timestamp, value = record[0], record[1]
        if timestamp is None or value is None:
            continue
        try:
            pairs.append((int(timestamp), float(value)))
        except (TypeError, ValueError):
            continue
    return pairs


def build_client(settings: Settings, sleep: Callable[[float], None] = time.sleep) -> SensorApiClient:
    return SensorApiClient(
        base_url=settings.api_base_url,
        api_token=settings.api_token or "",
        device_serial=settings.device_serial or "",
        policy=RetryPolicy(
            max_retries=settings.max_retries,
            backoff_base_ms=settings.backoff_base_ms,
            retry_delay_ms=settings.retry_delay_ms,
        ),
        timeout=settings.http_timeout,
        sleep=sleep,
    )
