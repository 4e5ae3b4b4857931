# listing_ingest/services/collections.py
from __future__ import annotations

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import NotFoundError
from ..models import Collection


class CollectionDirectory(Protocol):
    async def get_collection(self, session: AsyncSession, owner_id: str, collection_id: int) -> Collection: ...


class SqlCollectionDirectory:
    """Reads the `collections` table. Foreign or inactive collections look the same as missing ones."""

    async def get_collection(self, session: AsyncSession, owner_id: str, collection_id: int) -> Collection:
        col = await session.get(Collection, collection_id)
        if col is None or col.owner_id != owner_id or not col.is_active:
            raise NotFoundError(f"Collection {collection_id} not found")
        return col
