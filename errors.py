"""Error taxonomy shared by the sync engine, stores and entry points."""

from __future__ import annotations

from typing import Optional


class WeatherSyncError(Exception):
    """Base class for every error raised by the sync engine."""


class ConfigError(WeatherSyncError):
    """Required configuration is missing or invalid."""


class FetchError(WeatherSyncError):

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimited(FetchError):
    """Upstream answered 429; retry after backing off."""

    def __init__(self, message: str = "rate limited") -> None:
        super().__init__(message, status_code=429)


class TransientFetchError(FetchError):
    """Any other failed attempt (non-2xx, transport error, bad body)."""


class StorageError(WeatherSyncError):
    """A read or write against the backing store failed."""


class FatalMetadataError(StorageError):
    """The final run summary could not be persisted."""
