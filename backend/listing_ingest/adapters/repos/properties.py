# listing_ingest/adapters/repos/properties.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.address import normalize_address, price_range
from ...domain.types import ParsedProperty
from ...models import Property

OVERRIDE_FIELDS = ("description", "agent_notes", "beds", "baths", "sqft")


class PropertyRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_position(self, owner_id: str, collection_id: int) -> int:
        q = select(func.max(Property.position)).where(
            Property.owner_id == owner_id,
            Property.collection_id == collection_id,
        )
        current = (await self.session.execute(q)).scalar()
        return 0 if current is None else int(current) + 1

    async def find_by_source_url(self, owner_id: str, collection_id: int, source_url: str) -> Property | None:
        q = select(Property).where(
            Property.owner_id == owner_id,
            Property.collection_id == collection_id,
            Property.source_url == source_url,
        )
        return (await self.session.execute(q)).scalars().first()

    async def find_by_normalized_address(self, owner_id: str, collection_id: int, normalized: str) -> Property | None:
        if not normalized:
            return None
        q = select(Property).where(
            Property.owner_id == owner_id,
            Property.collection_id == collection_id,
            Property.address_normalized == normalized,
        )
        return (await self.session.execute(q)).scalars().first()

    async def commit_parsed(
        self,
        *,
        owner_id: str,
        collection_id: int,
        parsed: ParsedProperty,
        overrides: dict[str, Any] | None = None,
        fully_parsed: bool = True,
        loading_progress: int = 100,
    ) -> Property:
        """
        Insert the committed entity at the end of the collection.
        Caller owns the transaction; we only flush to get the id.
        """
        prop = Property(
            owner_id=owner_id,
            collection_id=collection_id,
            position=await self.next_position(owner_id, collection_id),
            source=parsed.source,
            source_id=parsed.source_id or None,
            source_url=parsed.source_url,
        )
        _apply(prop, parsed, overrides)
        prop.is_fully_parsed = fully_parsed
        prop.loading_progress = loading_progress
        self.session.add(prop)
        await self.session.flush()
        return prop

    async def backfill(self, property_id: int, parsed: ParsedProperty) -> Property | None:
        """Replace placeholder data with a full parse. Keeps position and user notes."""
        prop = await self.session.get(Property, property_id)
        if prop is None:
            return None
        _apply(prop, parsed, {"agent_notes": prop.agent_notes} if prop.agent_notes else None)
        prop.is_fully_parsed = True
        prop.loading_progress = 100
        await self.session.flush()
        return prop


def _apply(prop: Property, parsed: ParsedProperty, overrides: dict[str, Any] | None) -> None:
    a = parsed.address
    prop.address_street = a.street
    prop.address_city = a.city
    prop.address_state = a.state
    prop.address_zip = a.zip
    prop.address_full = a.full
    prop.address_normalized = "" if a.is_placeholder else normalize_address(a.full)

    prop.display_price = parsed.pricing.display_price or None
    prop.list_price = float(parsed.pricing.numeric_price) if parsed.pricing.numeric_price is not None else None
    prop.price_range = price_range(parsed.pricing.numeric_price)

    d = parsed.details
    prop.beds = d.beds
    prop.baths = d.baths
    prop.sqft = d.sqft
    prop.year_built = d.year_built
    prop.property_type = d.property_type
    prop.description = d.description

    prop.image_count = len(parsed.images)
    prop.parsed_data_json = json.dumps(parsed.to_dict(), default=str)
    prop.updated_at = datetime.utcnow()

    for key, value in (overrides or {}).items():
        if key in OVERRIDE_FIELDS and value is not None:
            setattr(prop, key, value)
