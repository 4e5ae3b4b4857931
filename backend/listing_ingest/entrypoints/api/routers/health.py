# listing_ingest/entrypoints/api/routers/health.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from ..deps import require_api_key
from ....config import settings

router = APIRouter(tags=["health"])


def redact(secret: str | None) -> str | None:
    """Keep enough of a key to tell which one is loaded."""
    if not secret:
        return secret
    return "***" if len(secret) <= 8 else f"{secret[:4]}***{secret[-4:]}"


@router.get("/health")
def health(request: Request) -> dict[str, Any]:
    factory = getattr(request.app.state, "parser_factory", None)
    return {
        "status": "ok",
        "env": settings.ENV,
        "parsers": factory.registered_parser_names() if factory is not None else [],
    }


@router.get("/debug/config", dependencies=[Depends(require_api_key)])
def debug_config(request: Request) -> dict[str, Any]:
    state = request.app.state
    return {
        "runtime": {"ENV": settings.ENV, "INGEST_DB_URL": settings.INGEST_DB_URL, "API_KEY": redact(settings.API_KEY)},
        "rendering": {
            "RENDERER": settings.RENDERER,
            "renderer_class": type(getattr(state, "renderer", None)).__name__,
            "RENDER_HEADLESS": settings.RENDER_HEADLESS,
        },
        "batches": {
            "BATCH_MAX_URLS": settings.BATCH_MAX_URLS,
            "BATCH_ITEM_DELAY_S": settings.BATCH_ITEM_DELAY_S,
            "BATCH_FULL_PASS_DELAY_S": settings.BATCH_FULL_PASS_DELAY_S,
        },
        "external_api": {
            "RAPIDAPI_HOST": settings.RAPIDAPI_HOST,
            "RAPIDAPI_KEY": redact(settings.RAPIDAPI_KEY),
            "QUOTA_MONTHLY_LIMIT": settings.QUOTA_MONTHLY_LIMIT,
            "QUOTA_STORE": settings.QUOTA_STORE,
        },
    }
