# listing_ingest/domain/types.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ListingSource(str, Enum):
    flexmls = "flexmls"
    zillow = "zillow"
    realtor = "realtor"
    trulia = "trulia"
    external_api = "external_api"
    unknown = "unknown"


@dataclass(frozen=True)
class Address:
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    full: str = ""
    is_placeholder: bool = False


@dataclass(frozen=True)
class Pricing:
    display_price: str = ""
    numeric_price: int | None = None
    price_per_sqft: float | None = None


@dataclass(frozen=True)
class ImageRef:
    url: str
    alt: str | None = None
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True)
class PropertyDetails:
    beds: float | None = None
    baths: float | None = None
    sqft: int | None = None
    year_built: int | None = None
    lot_size: str | None = None
    property_type: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ListingInfo:
    mls_number: str | None = None
    agent_name: str | None = None
    office_name: str | None = None
    status: str | None = None
    list_date: str | None = None


@dataclass(frozen=True)
class UrlAddress:
    source_id: str
    address: Address


@dataclass(frozen=True)
class ParsedProperty:
    """
    One listing as every ingestion path hands it to the batch pipeline.

    `diagnostics` is non-empty when extraction ran in degraded mode (page
    shape not recognised, structured payload missing). The record is still
    usable: address.full falls back to URL-derived text.
    """

    source_id: str
    source: ListingSource
    address: Address
    source_url: str
    pricing: Pricing = field(default_factory=Pricing)
    images: tuple[ImageRef, ...] = ()
    details: PropertyDetails = field(default_factory=PropertyDetails)
    listing: ListingInfo = field(default_factory=ListingInfo)
    raw_extra: dict[str, Any] = field(default_factory=dict)
    extracted_at: datetime = field(default_factory=datetime.utcnow)
    is_quick: bool = False
    diagnostics: tuple[str, ...] = ()

    @property
    def is_degraded(self) -> bool:
        return bool(self.diagnostics)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["source"] = self.source.value
        d["images"] = [asdict(i) for i in self.images]
        d["diagnostics"] = list(self.diagnostics)
        d["extracted_at"] = self.extracted_at.isoformat()
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ParsedProperty:
        extracted_at = d.get("extracted_at")
        return cls(
            source_id=str(d.get("source_id") or ""),
            source=ListingSource(d.get("source") or ListingSource.unknown.value),
            address=Address(**(d.get("address") or {})),
            source_url=str(d.get("source_url") or ""),
            pricing=Pricing(**(d.get("pricing") or {})),
            images=tuple(ImageRef(**i) for i in d.get("images") or []),
            details=PropertyDetails(**(d.get("details") or {})),
            listing=ListingInfo(**(d.get("listing") or {})),
            raw_extra=dict(d.get("raw_extra") or {}),
            extracted_at=datetime.fromisoformat(extracted_at) if extracted_at else datetime.utcnow(),
            is_quick=bool(d.get("is_quick", False)),
            diagnostics=tuple(d.get("diagnostics") or ()),
        )
