from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .models import Batch, BatchItem, Property

StrategyName = Literal["instant", "progressive", "exhaustive"]


# ----- Batches -----

class BatchCreate(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=64)
    collection_id: int = Field(..., ge=1)


class UrlsAdd(BaseModel):
    urls: list[str] = Field(..., min_length=1)


class ItemOverrides(BaseModel):
    description: str | None = None
    agent_notes: str | None = None
    beds: float | None = Field(default=None, ge=0)
    baths: float | None = Field(default=None, ge=0)
    sqft: int | None = Field(default=None, ge=0)


class ImportSelection(BaseModel):
    item_id: int
    overrides: ItemOverrides | None = None


class ImportRequest(BaseModel):
    selections: list[ImportSelection] = Field(..., min_length=1)


class BatchOut(BaseModel):
    id: int
    owner_id: str
    collection_id: int
    status: str
    strategy: str | None = None
    total_count: int
    success_count: int
    failure_count: int
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_row(cls, b: Batch) -> BatchOut:
        return cls(
            id=b.id,
            owner_id=b.owner_id,
            collection_id=b.collection_id,
            status=b.status.value,
            strategy=b.strategy.value if b.strategy else None,
            total_count=b.total_count,
            success_count=b.success_count,
            failure_count=b.failure_count,
            created_at=b.created_at,
            started_at=b.started_at,
            completed_at=b.completed_at,
        )


class BatchItemOut(BaseModel):
    id: int
    source_url: str
    source: str
    position: int
    parse_status: str
    loading_progress: int
    parse_error: str | None = None
    is_duplicate: bool = False
    committed_property_id: int | None = None
    quick_data: dict[str, Any] | None = None
    parsed_data: dict[str, Any] | None = None

    @classmethod
    def from_row(cls, i: BatchItem, *, with_data: bool = True) -> BatchItemOut:
        return cls(
            id=i.id,
            source_url=i.source_url,
            source=i.source.value,
            position=i.position,
            parse_status=i.parse_status.value,
            loading_progress=i.loading_progress,
            parse_error=i.parse_error,
            is_duplicate=i.is_duplicate,
            committed_property_id=i.committed_property_id,
            quick_data=json.loads(i.quick_data_json) if with_data and i.quick_data_json else None,
            parsed_data=json.loads(i.parsed_data_json) if with_data and i.parsed_data_json else None,
        )


class BatchStatusOut(BaseModel):
    batch: BatchOut
    items: list[BatchItemOut]


class PropertyOut(BaseModel):
    id: int
    collection_id: int
    position: int
    source: str
    source_url: str
    address: str
    display_price: str | None = None
    price_range: str | None = None
    beds: float | None = None
    baths: float | None = None
    sqft: int | None = None
    image_count: int = 0
    is_fully_parsed: bool
    loading_progress: int

    @classmethod
    def from_row(cls, p: Property) -> PropertyOut:
        return cls(
            id=p.id,
            collection_id=p.collection_id,
            position=p.position,
            source=p.source.value,
            source_url=p.source_url,
            address=p.address_full,
            display_price=p.display_price,
            price_range=p.price_range,
            beds=p.beds,
            baths=p.baths,
            sqft=p.sqft,
            image_count=p.image_count,
            is_fully_parsed=p.is_fully_parsed,
            loading_progress=p.loading_progress,
        )


class ItemResult(BaseModel):
    item_id: int
    url: str
    status: str
    data: dict[str, Any] | None = None
    error: str | None = None
    is_duplicate: bool = False


class Summary(BaseModel):
    total: int = Field(..., ge=0)
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)


class ProgressiveResult(BaseModel):
    started: bool
    quick_results: list[ItemResult]


class SequentialResult(BaseModel):
    results: list[ItemResult]
    summary: Summary


class ImportResult(BaseModel):
    item_id: Any
    success: bool
    property_id: int | None = None
    error: str | None = None
    is_duplicate: bool = False
    existing_property_id: int | None = None


class ImportSummary(BaseModel):
    import_results: list[ImportResult]
    summary: Summary


# ----- Parsers -----

class DetectRequest(BaseModel):
    url: str


class DetectOut(BaseModel):
    url: str
    valid: bool
    source: str
    site_name: str
    supported: bool
    parser: str | None = None
    confidence: float = 0.0
    source_id: str | None = None
    address: dict[str, Any] | None = None
    address_error: str | None = None


# ----- External listings API -----

class SuggestionOut(BaseModel):
    text: str
    type: str
