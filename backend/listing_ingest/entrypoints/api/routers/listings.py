# listing_ingest/entrypoints/api/routers/listings.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from ..deps import get_listings_client, require_api_key
from ....adapters.clients.listings_api import ExternalListingsClient, parse_location
from ....schemas import SuggestionOut

router = APIRouter(prefix="/external", tags=["external"], dependencies=[Depends(require_api_key)])


@router.get("/search")
async def search(
    location: str | None = Query(default=None, description='"City, ST", "City ST", or a 5-digit zip'),
    city: str | None = Query(default=None),
    state_code: str | None = Query(default=None, min_length=2, max_length=2),
    limit: int = Query(20, ge=1, le=200),
    client: ExternalListingsClient = Depends(get_listings_client),
) -> dict[str, Any]:
    if city:
        city_or_zip, state = city, state_code or ""
    elif location and location.strip().isdigit():
        city_or_zip, state = location.strip(), state_code or ""
    else:
        loc = parse_location(location or "")
        city_or_zip, state = loc.city, loc.state_code

    rows = await client.search_by_location(city_or_zip, state, limit=limit)
    return {"count": len(rows), "results": [r.to_dict() for r in rows]}


@router.get("/properties/{property_id}")
async def get_property(
    property_id: str,
    client: ExternalListingsClient = Depends(get_listings_client),
) -> dict[str, Any]:
    return (await client.get_by_id(property_id)).to_dict()


@router.get("/autocomplete", response_model=list[SuggestionOut])
async def autocomplete(
    q: str = Query(..., max_length=200),
    client: ExternalListingsClient = Depends(get_listings_client),
) -> list[SuggestionOut]:
    return [SuggestionOut(text=s.text, type=s.type) for s in await client.autocomplete(q)]


@router.get("/health")
async def external_health(client: ExternalListingsClient = Depends(get_listings_client)) -> dict[str, Any]:
    return await client.health_status()


@router.post("/circuit/reset")
def reset_circuit(client: ExternalListingsClient = Depends(get_listings_client)) -> dict[str, Any]:
    client.reset_circuit_breaker()
    return {"status": "reset", "circuit_breaker": client.breaker.stats()}
