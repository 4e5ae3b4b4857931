# listing_ingest/models.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .domain.types import ListingSource


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class BatchStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"


class ParseStatus(str, enum.Enum):
    pending = "pending"
    quick_parsing = "quick_parsing"
    quick_parsed = "quick_parsed"
    full_parsing = "full_parsing"
    parsed = "parsed"
    imported = "imported"
    failed = "failed"


class BatchStrategy(str, enum.Enum):
    instant = "instant"
    progressive = "progressive"
    exhaustive = "exhaustive"


class OutboxStatus(str, enum.Enum):
    pending = "pending"
    delivered = "delivered"
    failed = "failed"


# -----------------------------
# Destination collections
# -----------------------------
class Collection(Base):
    """
    Minimal view of the owner's collection (timeline) that imports land in.
    Full CRUD lives in another service; we only read it.
    """
    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(200), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Property(Base):
    __tablename__ = "properties"
    __table_args__ = (
        UniqueConstraint("collection_id", "source_url", name="uq_property_collection_source_url"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    collection_id: Mapped[int] = mapped_column(ForeignKey("collections.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    source: Mapped[ListingSource] = mapped_column(Enum(ListingSource), default=ListingSource.unknown)
    source_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    source_url: Mapped[str] = mapped_column(String(2048))

    address_street: Mapped[str] = mapped_column(String(255), default="")
    address_city: Mapped[str] = mapped_column(String(120), default="")
    address_state: Mapped[str] = mapped_column(String(20), default="")
    address_zip: Mapped[str] = mapped_column(String(20), default="")
    address_full: Mapped[str] = mapped_column(String(512), default="")
    address_normalized: Mapped[str] = mapped_column(String(512), default="", index=True)

    display_price: Mapped[str | None] = mapped_column(String(40), nullable=True)
    list_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_range: Mapped[str | None] = mapped_column(String(20), nullable=True)

    beds: Mapped[float | None] = mapped_column(Float, nullable=True)
    baths: Mapped[float | None] = mapped_column(Float, nullable=True)
    sqft: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)
    property_type: Mapped[str | None] = mapped_column(String(80), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    agent_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_count: Mapped[int] = mapped_column(Integer, default=0)
    parsed_data_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_fully_parsed: Mapped[bool] = mapped_column(Boolean, default=False)
    loading_progress: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# -----------------------------
# Bulk import
# -----------------------------
class Batch(Base):
    __tablename__ = "import_batches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    collection_id: Mapped[int] = mapped_column(ForeignKey("collections.id"), index=True)

    status: Mapped[BatchStatus] = mapped_column(Enum(BatchStatus), default=BatchStatus.pending, index=True)
    strategy: Mapped[BatchStrategy | None] = mapped_column(Enum(BatchStrategy), nullable=True)

    total_count: Mapped[int] = mapped_column(Integer, default=0)
    success_count: Mapped[int] = mapped_column(Integer, default=0)
    failure_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class BatchItem(Base):
    __tablename__ = "batch_items"
    __table_args__ = (
        UniqueConstraint("batch_id", "position", name="uq_batch_item_position"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    batch_id: Mapped[int] = mapped_column(ForeignKey("import_batches.id", ondelete="CASCADE"), index=True)

    source_url: Mapped[str] = mapped_column(String(2048))
    source: Mapped[ListingSource] = mapped_column(Enum(ListingSource), default=ListingSource.unknown)
    position: Mapped[int] = mapped_column(Integer)

    parse_status: Mapped[ParseStatus] = mapped_column(Enum(ParseStatus), default=ParseStatus.pending, index=True)
    quick_data_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    parsed_data_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    parse_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_duplicate: Mapped[bool] = mapped_column(Boolean, default=False)
    loading_progress: Mapped[int] = mapped_column(Integer, default=0)

    committed_property_id: Mapped[int | None] = mapped_column(
        ForeignKey("properties.id"), nullable=True, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# -----------------------------
# External API quota (survives restarts)
# -----------------------------
class QuotaRecord(Base):
    __tablename__ = "api_quota_usage"

    month: Mapped[str] = mapped_column(String(7), primary_key=True)  # YYYY-MM
    total: Mapped[int] = mapped_column(Integer, default=0)
    by_endpoint_json: Mapped[str] = mapped_column(Text, default="{}")

    last_request_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic: Mapped[str] = mapped_column(String(120), index=True)
    payload_json: Mapped[str] = mapped_column(Text)

    status: Mapped[OutboxStatus] = mapped_column(Enum(OutboxStatus), default=OutboxStatus.pending, index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)

    next_attempt_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
