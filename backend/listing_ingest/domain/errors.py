# listing_ingest/domain/errors.py
from __future__ import annotations

from typing import Any


class ListingIngestError(Exception):
    """Base class for every error this service raises on purpose."""


class ValidationError(ListingIngestError):
    """Malformed URL or caller input."""


class NotFoundError(ListingIngestError):
    """Batch, item, collection or upstream listing does not exist."""


class BlockedError(ListingIngestError):
    """
    The listing site refused us (HTTP 403/429, anti-bot page).
    Callers should back off instead of retrying right away.
    """

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransientNetworkError(ListingIngestError):
    """Timeouts, dropped connections, 429/502/503/504 from an API. Safe to retry."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PermanentParseError(ListingIngestError):
    """The page can never be parsed as-is (HTTP 404/410, not a listing page)."""


class QuotaExceededError(ListingIngestError):
    def __init__(self, message: str, *, month: str, limit: int) -> None:
        super().__init__(message)
        self.month = month
        self.limit = limit


class CircuitOpenError(ListingIngestError):
    def __init__(self, message: str, *, retry_after_s: float | None = None) -> None:
        super().__init__(message)
        self.retry_after_s = retry_after_s


class ExternalApiError(ListingIngestError):
    """Non-retryable error answer from the structured listings API."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ResponseValidationError(ListingIngestError):
    """Upstream answered 2xx but the body does not have the fields we rely on."""

    def __init__(self, message: str, *, invalid_fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.invalid_fields = list(invalid_fields or [])


class IllegalTransitionError(ListingIngestError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"illegal parse status transition: {current} -> {target}")
        self.current = current
        self.target = target
