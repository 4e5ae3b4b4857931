# listing_ingest/integrations/services/outbox.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...models import OutboxEvent, OutboxStatus

log = logging.getLogger(__name__)

PROPERTY_IMPORTED = "property.imported"


async def enqueue_event(session: AsyncSession, topic: str, payload: dict[str, Any]) -> OutboxEvent:
    ev = OutboxEvent(
        topic=topic,
        payload_json=json.dumps(payload, default=str),
        status=OutboxStatus.pending,
        attempts=0,
        last_error=None,
        next_attempt_at=datetime.utcnow(),
    )
    session.add(ev)
    await session.flush()
    return ev


async def pending_events(session: AsyncSession, topic: str | None = None, limit: int = 100) -> list[OutboxEvent]:
    stmt = select(OutboxEvent).where(OutboxEvent.status == OutboxStatus.pending)
    if topic:
        stmt = stmt.where(OutboxEvent.topic == topic)
    stmt = stmt.order_by(OutboxEvent.id.asc()).limit(limit)
    return list((await session.execute(stmt)).scalars().all())


class ImportNotifier(Protocol):
    async def property_imported(self, payload: dict[str, Any]) -> None: ...


class OutboxNotifier:
    """
    Post-commit hook: records a `property.imported` event for whatever
    delivers notifications downstream. Runs in its own transaction so a
    failure here can never roll back the import that triggered it.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def property_imported(self, payload: dict[str, Any]) -> None:
        async with self.session_maker() as session:
            await enqueue_event(session, PROPERTY_IMPORTED, payload)
            await session.commit()


async def notify_quietly(notifier: ImportNotifier | None, payload: dict[str, Any]) -> None:
    if notifier is None:
        return
    try:
        await notifier.property_imported(payload)
    except Exception as e:
        log.warning("import notification failed for property %s: %s", payload.get("property_id"), e)
