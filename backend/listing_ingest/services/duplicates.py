# listing_ingest/services/duplicates.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.properties import PropertyRepository
from ..domain.address import normalize_address
from ..domain.types import ParsedProperty

log = logging.getLogger(__name__)

SAME_URL = "Same listing URL already imported"
SIMILAR_ADDRESS = "Similar address already exists"


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    reason: str | None = None
    existing_property_id: int | None = None


NOT_DUPLICATE = DuplicateCheck(is_duplicate=False)


class DuplicateDetector:
    """
    Gate in front of every commit, scoped to one owner's collection.

    1) same source_url
    2) same normalized address, skipped for URL-derived placeholders since
       two undecodable links would otherwise collide on nothing real
    """

    async def check(
        self,
        session: AsyncSession,
        owner_id: str,
        collection_id: int,
        candidate: ParsedProperty,
    ) -> DuplicateCheck:
        repo = PropertyRepository(session)

        existing = await repo.find_by_source_url(owner_id, collection_id, candidate.source_url)
        if existing is not None:
            log.info("Duplicate by URL: %s -> property %s", candidate.source_url, existing.id)
            return DuplicateCheck(True, SAME_URL, existing.id)

        if candidate.address.is_placeholder:
            return NOT_DUPLICATE

        normalized = normalize_address(candidate.address.full)
        existing = await repo.find_by_normalized_address(owner_id, collection_id, normalized)
        if existing is not None:
            log.info("Duplicate by address: %r -> property %s", normalized, existing.id)
            return DuplicateCheck(True, SIMILAR_ADDRESS, existing.id)

        return NOT_DUPLICATE
