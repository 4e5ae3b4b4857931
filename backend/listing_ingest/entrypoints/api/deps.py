# listing_ingest/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Header, HTTPException, Request

from ...adapters.clients.listings_api import ExternalListingsClient
from ...config import settings
from ...services.batches import BatchManager
from ...services.parser_factory import ParserFactory


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


# Objects built in the startup hook live on app.state.

def get_batch_manager(request: Request) -> BatchManager:
    return request.app.state.batch_manager


def get_parser_factory(request: Request) -> ParserFactory:
    return request.app.state.parser_factory


def get_listings_client(request: Request) -> ExternalListingsClient:
    return request.app.state.listings_client
