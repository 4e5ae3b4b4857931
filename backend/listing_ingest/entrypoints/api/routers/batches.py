# listing_ingest/entrypoints/api/routers/batches.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from ..deps import get_batch_manager, require_api_key
from ....schemas import (
    BatchCreate,
    BatchItemOut,
    BatchOut,
    BatchStatusOut,
    ImportRequest,
    ImportSummary,
    ProgressiveResult,
    PropertyOut,
    SequentialResult,
    StrategyName,
    UrlsAdd,
)
from ....services.batches import BatchManager

router = APIRouter(prefix="/batches", tags=["batches"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=BatchOut, status_code=201)
async def create_batch(body: BatchCreate, manager: BatchManager = Depends(get_batch_manager)) -> BatchOut:
    batch = await manager.create_batch(body.owner_id, body.collection_id)
    return BatchOut.from_row(batch)


@router.get("/{batch_id}", response_model=BatchStatusOut)
async def get_batch_status(batch_id: int, manager: BatchManager = Depends(get_batch_manager)) -> BatchStatusOut:
    snap = await manager.get_batch_status(batch_id)
    return BatchStatusOut(
        batch=BatchOut.from_row(snap.batch),
        items=[BatchItemOut.from_row(i) for i in snap.items],
    )


@router.delete("/{batch_id}", status_code=204)
async def delete_batch(batch_id: int, manager: BatchManager = Depends(get_batch_manager)) -> Response:
    await manager.delete_batch(batch_id)
    return Response(status_code=204)


@router.post("/{batch_id}/urls", response_model=list[BatchItemOut])
async def add_urls(
    batch_id: int,
    body: UrlsAdd,
    manager: BatchManager = Depends(get_batch_manager),
) -> list[BatchItemOut]:
    items = await manager.add_urls(batch_id, body.urls)
    return [BatchItemOut.from_row(i, with_data=False) for i in items]


@router.post("/{batch_id}/instant", response_model=list[PropertyOut])
async def create_instant(batch_id: int, manager: BatchManager = Depends(get_batch_manager)) -> list[PropertyOut]:
    props = await manager.create_instant(batch_id)
    return [PropertyOut.from_row(p) for p in props]


@router.post("/{batch_id}/progressive", response_model=ProgressiveResult)
async def parse_progressive(
    batch_id: int,
    manager: BatchManager = Depends(get_batch_manager),
) -> ProgressiveResult:
    return ProgressiveResult(**await manager.parse_progressive(batch_id))


@router.post("/{batch_id}/sequential", response_model=SequentialResult)
async def parse_sequential(
    batch_id: int,
    manager: BatchManager = Depends(get_batch_manager),
) -> SequentialResult:
    return SequentialResult(**await manager.parse_sequential(batch_id))


@router.post("/{batch_id}/process")
async def run_strategy(
    batch_id: int,
    strategy: StrategyName = Query("progressive"),
    manager: BatchManager = Depends(get_batch_manager),
) -> Any:
    result = await manager.run_strategy(batch_id, strategy)
    if strategy == "instant":
        return [PropertyOut.from_row(p) for p in result]
    if strategy == "progressive":
        return ProgressiveResult(**result)
    return SequentialResult(**result)


@router.post("/{batch_id}/import", response_model=ImportSummary)
async def import_selected(
    batch_id: int,
    body: ImportRequest,
    manager: BatchManager = Depends(get_batch_manager),
) -> ImportSummary:
    selections = [
        {"item_id": s.item_id, "overrides": s.overrides.model_dump(exclude_none=True) if s.overrides else None}
        for s in body.selections
    ]
    return ImportSummary(**await manager.import_selected(batch_id, selections))
