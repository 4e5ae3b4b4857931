# listing_ingest/entrypoints/fastapi_app.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .. import db
from ..adapters.browser.base import PageRenderer
from ..adapters.browser.factory import build_renderer
from ..adapters.clients.listings_api import ExternalListingsClient
from ..adapters.clients.quota import MemoryQuotaStore, QuotaManager, SqlQuotaStore
from ..config import settings
from ..domain.errors import (
    BlockedError,
    CircuitOpenError,
    ExternalApiError,
    IllegalTransitionError,
    ListingIngestError,
    NotFoundError,
    QuotaExceededError,
    ResponseValidationError,
    TransientNetworkError,
    ValidationError,
)
from ..integrations.services.outbox import OutboxNotifier
from ..models import Base
from ..services.batches import BatchManager
from ..services.parser_factory import build_default_factory
from .api.routers import batches, health, listings, parsers

log = logging.getLogger(__name__)

# First match wins, so subclasses go before their bases.
ERROR_STATUS: tuple[tuple[type[ListingIngestError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (QuotaExceededError, 429),
    (CircuitOpenError, 503),
    (BlockedError, 503),
    (TransientNetworkError, 502),
    (ExternalApiError, 502),
    (ResponseValidationError, 502),
    (IllegalTransitionError, 409),
)


def _status_for(exc: ListingIngestError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


async def _domain_error(request: Request, exc: ListingIngestError) -> JSONResponse:
    status = _status_for(exc)
    body: dict[str, Any] = {"detail": str(exc), "error": type(exc).__name__}
    headers: dict[str, str] = {}

    if isinstance(exc, CircuitOpenError) and exc.retry_after_s is not None:
        headers["Retry-After"] = str(int(exc.retry_after_s) + 1)
    elif isinstance(exc, QuotaExceededError):
        body.update(month=exc.month, limit=exc.limit)
    elif isinstance(exc, ResponseValidationError):
        body["invalid_fields"] = exc.invalid_fields
    elif isinstance(exc, (ExternalApiError, BlockedError, TransientNetworkError)):
        body["upstream_status"] = exc.status_code

    if status >= 500:
        log.warning("%s %s -> %d %s: %s", request.method, request.url.path, status, type(exc).__name__, exc)
    return JSONResponse(status_code=status, content=body, headers=headers)


def create_app(
    *,
    engine: AsyncEngine | None = None,
    renderer: PageRenderer | None = None,
    listings_client: ExternalListingsClient | None = None,
    parser_kwargs: dict[str, Any] | None = None,
    manager_kwargs: dict[str, Any] | None = None,
) -> FastAPI:
    app = FastAPI(title="Listing Ingest - Bulk Listing Import")

    engine = engine or db.engine
    session_maker: async_sessionmaker[AsyncSession] = (
        db.AsyncSessionLocal
        if engine is db.engine
        else async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )

    @app.on_event("startup")
    async def _startup() -> None:
        # Single place where DB tables are created in dev.
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        page_renderer = renderer or build_renderer()
        await page_renderer.start()
        factory = build_default_factory(page_renderer, **(parser_kwargs or {}))

        client = listings_client
        if client is None:
            store = SqlQuotaStore(session_maker) if settings.QUOTA_STORE == "sql" else MemoryQuotaStore()
            client = ExternalListingsClient(quota=QuotaManager(store))

        manager = BatchManager(
            session_maker,
            factory,
            notifier=OutboxNotifier(session_maker),
            **(manager_kwargs or {}),
        )
        await manager.fail_interrupted_items()

        app.state.renderer = page_renderer
        app.state.parser_factory = factory
        app.state.listings_client = client
        app.state.batch_manager = manager
        log.info("Started with renderer=%s parsers=%s", type(page_renderer).__name__, factory.registered_parser_names())

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        manager: BatchManager | None = getattr(app.state, "batch_manager", None)
        if manager is not None:
            await manager.shutdown()
        page_renderer: PageRenderer | None = getattr(app.state, "renderer", None)
        if page_renderer is not None:
            await page_renderer.close()

    app.add_exception_handler(ListingIngestError, _domain_error)

    # Routers
    app.include_router(health.router)
    app.include_router(batches.router)
    app.include_router(parsers.router)
    app.include_router(listings.router)

    return app
