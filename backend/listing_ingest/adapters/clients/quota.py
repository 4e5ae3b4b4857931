# listing_ingest/adapters/clients/quota.py
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...config import settings
from ...domain.errors import QuotaExceededError
from ...models import QuotaRecord

log = logging.getLogger(__name__)


@dataclass
class QuotaUsage:
    month: str
    total: int = 0
    by_endpoint: dict[str, int] = field(default_factory=dict)
    last_request_at: datetime | None = None


class QuotaStore(Protocol):
    async def load(self, month: str) -> QuotaUsage | None: ...

    async def save(self, usage: QuotaUsage, *, expires_at: datetime) -> None: ...


class MemoryQuotaStore:
    """Per-process only; counts are lost on restart."""

    def __init__(self) -> None:
        self._rows: dict[str, QuotaUsage] = {}

    async def load(self, month: str) -> QuotaUsage | None:
        u = self._rows.get(month)
        if u is None:
            return None
        return QuotaUsage(u.month, u.total, dict(u.by_endpoint), u.last_request_at)

    async def save(self, usage: QuotaUsage, *, expires_at: datetime) -> None:
        self._rows[usage.month] = QuotaUsage(usage.month, usage.total, dict(usage.by_endpoint), usage.last_request_at)


class SqlQuotaStore:
    """One row per month in api_quota_usage; rows outlive their month for audit."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def load(self, month: str) -> QuotaUsage | None:
        async with self.session_maker() as session:
            row = await session.get(QuotaRecord, month)
            if row is None:
                return None
            return QuotaUsage(
                month=row.month,
                total=row.total,
                by_endpoint=json.loads(row.by_endpoint_json or "{}"),
                last_request_at=row.last_request_at,
            )

    async def save(self, usage: QuotaUsage, *, expires_at: datetime) -> None:
        async with self.session_maker() as session:
            row = (await session.execute(select(QuotaRecord).where(QuotaRecord.month == usage.month))).scalars().first()
            if row is None:
                row = QuotaRecord(month=usage.month)
                session.add(row)
            row.total = usage.total
            row.by_endpoint_json = json.dumps(usage.by_endpoint, sort_keys=True)
            row.last_request_at = usage.last_request_at
            row.expires_at = expires_at
            row.updated_at = datetime.utcnow()
            await session.commit()


def month_key(now: datetime) -> str:
    return now.strftime("%Y-%m")


class QuotaManager:
    """
    Monthly request ceiling for the metered listings API.

    `acquire()` checks and increments under one lock, so concurrent callers
    can never push the counter past the limit. A new month is a new key,
    which is how the counter resets.
    """

    WARN_LEVELS = (0.90, 0.75)

    def __init__(
        self,
        store: QuotaStore,
        *,
        limit: int | None = None,
        count_failed_calls: bool | None = None,
        retention_days: int | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.store = store
        self.limit = int(settings.QUOTA_MONTHLY_LIMIT if limit is None else limit)
        self.count_failed_calls = (
            settings.QUOTA_COUNT_FAILED_CALLS if count_failed_calls is None else count_failed_calls
        )
        self.retention_days = int(retention_days or settings.QUOTA_RETENTION_DAYS)
        self._clock = clock
        self._lock = asyncio.Lock()

    def _expires_at(self, now: datetime) -> datetime:
        return now + timedelta(days=self.retention_days)

    async def acquire(self, endpoint: str) -> QuotaUsage:
        async with self._lock:
            now = self._clock()
            month = month_key(now)
            usage = await self.store.load(month) or QuotaUsage(month=month)

            if usage.total >= self.limit:
                log.error("API quota exhausted for %s: %d/%d", month, usage.total, self.limit)
                raise QuotaExceededError(
                    f"Monthly API quota exceeded ({usage.total}/{self.limit}) for {month}",
                    month=month,
                    limit=self.limit,
                )

            usage.total += 1
            usage.by_endpoint[endpoint] = usage.by_endpoint.get(endpoint, 0) + 1
            usage.last_request_at = now
            await self.store.save(usage, expires_at=self._expires_at(now))

        if self.limit:
            pct, before = usage.total / self.limit, (usage.total - 1) / self.limit
            # warn once per level, on the call that crosses it
            if any(before < level <= pct for level in self.WARN_LEVELS):
                log.warning("API quota at %.0f%% (%d/%d) for %s", pct * 100, usage.total, self.limit, month)
        return usage

    async def release(self, endpoint: str, *, sent: bool = True) -> None:
        """
        Give back one unit after a failed call. A call that reached the
        provider is refunded only when failed calls are not billed; one that
        was never sent (`sent=False`) is always refunded.
        """
        if sent and self.count_failed_calls:
            return
        async with self._lock:
            now = self._clock()
            usage = await self.store.load(month_key(now))
            if usage is None or usage.total <= 0:
                return
            usage.total -= 1
            left = usage.by_endpoint.get(endpoint, 0) - 1
            if left > 0:
                usage.by_endpoint[endpoint] = left
            else:
                usage.by_endpoint.pop(endpoint, None)
            await self.store.save(usage, expires_at=self._expires_at(now))

    async def usage_stats(self) -> dict[str, Any]:
        month = month_key(self._clock())
        usage = await self.store.load(month) or QuotaUsage(month=month)
        return {
            "month": month,
            "total": usage.total,
            "limit": self.limit,
            "remaining": max(0, self.limit - usage.total),
            "percent_used": round(100.0 * usage.total / self.limit, 1) if self.limit else 100.0,
            "by_endpoint": dict(usage.by_endpoint),
            "last_request_at": usage.last_request_at.isoformat() if usage.last_request_at else None,
            "count_failed_calls": self.count_failed_calls,
        }
