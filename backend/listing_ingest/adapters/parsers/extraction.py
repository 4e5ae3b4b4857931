# listing_ingest/adapters/parsers/extraction.py
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from bs4 import BeautifulSoup

from ...domain.address import build_address
from ...domain.parsing import clean_str, format_money, get_first, get_nested, to_float, to_int
from ...domain.types import Address, ImageRef, ListingInfo, Pricing, PropertyDetails

_PRICE_RE = re.compile(r"\$\s?[\d,]{3,}")


@dataclass
class Extraction:
    """Whatever one page (or one API payload) gave us. Everything optional."""

    address: Address | None = None
    pricing: Pricing = field(default_factory=Pricing)
    images: list[ImageRef] = field(default_factory=list)
    details: PropertyDetails = field(default_factory=PropertyDetails)
    listing: ListingInfo = field(default_factory=ListingInfo)
    raw_extra: dict[str, Any] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)

    def trimmed_for_quick(self) -> Extraction:
        """Quick pass keeps the card-level subset: address, price, beds/baths/sqft, one photo."""
        d = self.details
        return Extraction(
            address=self.address,
            pricing=self.pricing,
            images=self.images[:1],
            details=PropertyDetails(beds=d.beds, baths=d.baths, sqft=d.sqft),
            diagnostics=list(self.diagnostics),
        )


# -----------------------------
# Document helpers
# -----------------------------
def soup_of(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def script_json(soup: BeautifulSoup, selector: str) -> Any:
    tag = soup.select_one(selector)
    if tag is None:
        return None
    text = tag.string or tag.get_text()
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def next_data(soup: BeautifulSoup) -> dict[str, Any] | None:
    data = script_json(soup, "script#__NEXT_DATA__")
    return data if isinstance(data, dict) else None


def json_ld_objects(soup: BeautifulSoup) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for tag in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(tag.string or tag.get_text() or "")
        except ValueError:
            continue
        stack = data if isinstance(data, list) else [data]
        for obj in stack:
            if not isinstance(obj, dict):
                continue
            graph = obj.get("@graph")
            if isinstance(graph, list):
                out.extend(g for g in graph if isinstance(g, dict))
            else:
                out.append(obj)
    return out


def first_text(soup: BeautifulSoup, selectors: Iterable[str], *, pattern: re.Pattern[str] | None = None) -> str | None:
    for sel in selectors:
        for el in soup.select(sel):
            text = el.get_text(" ", strip=True)
            if not text:
                continue
            if pattern is not None and not pattern.search(text):
                continue
            return text
    return None


def first_img_src(soup: BeautifulSoup, selectors: Iterable[str]) -> ImageRef | None:
    for sel in selectors:
        img = soup.select_one(sel)
        if img is None:
            continue
        src = img.get("src") or img.get("data-src")
        if src:
            return ImageRef(url=src, alt=clean_str(img.get("alt")))
    return None


def og_image(soup: BeautifulSoup) -> ImageRef | None:
    meta = soup.select_one('meta[property="og:image"]')
    if meta is not None and meta.get("content"):
        return ImageRef(url=meta["content"])
    return None


def body_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text("\n", strip=True)


def find_pattern(text: str, patterns: Iterable[str]) -> str | None:
    """First capture group (or whole match) of the first pattern that hits."""
    for p in patterns:
        m = re.search(p, text, re.IGNORECASE)
        if m:
            return (m.group(1) if m.groups() else m.group(0)).strip()
    return None


def dedupe_images(images: Iterable[ImageRef]) -> list[ImageRef]:
    out: list[ImageRef] = []
    seen: set[str] = set()
    for img in images:
        if not img.url or img.url in seen:
            continue
        seen.add(img.url)
        out.append(img)
    return out


def pricing_from_text(text: str | None) -> Pricing:
    if not text:
        return Pricing()
    m = _PRICE_RE.search(text)
    if not m:
        return Pricing()
    numeric = to_int(re.sub(r"[^\d]", "", m.group(0)))
    return Pricing(display_price=format_money(numeric), numeric_price=numeric)


def pricing_from_number(price: Any, per_sqft: Any = None) -> Pricing:
    numeric = to_int(price)
    if not numeric:
        return Pricing(price_per_sqft=to_float(per_sqft))
    return Pricing(display_price=format_money(numeric), numeric_price=numeric, price_per_sqft=to_float(per_sqft))


def lot_size_text(value: Any, unit: str = "sqft") -> str | None:
    n = to_float(value)
    if n is None:
        return clean_str(value)
    return f"{int(n):,} {unit}" if n == int(n) else f"{n:,} {unit}"


# -----------------------------
# schema.org fallback
# -----------------------------
_LD_HOME_TYPES = {"singlefamilyresidence", "house", "residence", "apartment", "product", "realestatelisting", "place"}


def from_json_ld(objs: list[dict[str, Any]]) -> Extraction | None:
    home: dict[str, Any] | None = None
    offer: dict[str, Any] | None = None
    for obj in objs:
        types = obj.get("@type")
        types = [types] if isinstance(types, str) else (types or [])
        lowered = {str(t).lower() for t in types}
        if lowered & _LD_HOME_TYPES and home is None:
            home = obj
        if "offer" in lowered and offer is None:
            offer = obj
    if home is None:
        return None

    offer = offer or (home.get("offers") if isinstance(home.get("offers"), dict) else None) or {}
    addr = home.get("address") if isinstance(home.get("address"), dict) else {}
    images_raw = home.get("image") or []
    if isinstance(images_raw, str):
        images_raw = [images_raw]

    floor = home.get("floorSize")
    sqft = to_int(floor.get("value")) if isinstance(floor, dict) else to_int(floor)

    return Extraction(
        address=build_address(
            addr.get("streetAddress") or "",
            addr.get("addressLocality") or "",
            addr.get("addressRegion") or "",
            addr.get("postalCode") or "",
        ) if addr else None,
        pricing=pricing_from_number(offer.get("price")),
        images=dedupe_images(ImageRef(url=u) for u in images_raw if isinstance(u, str)),
        details=PropertyDetails(
            beds=to_float(home.get("numberOfRooms") or home.get("numberOfBedrooms")),
            baths=to_float(home.get("numberOfBathroomsTotal")),
            sqft=sqft,
            description=clean_str(home.get("description")),
        ),
    )


# -----------------------------
# realtor.com-family payloads (page JSON and the structured API share it)
# -----------------------------
def from_realtor_home(home: dict[str, Any]) -> Extraction:
    addr = get_nested(home, "location.address") or {}
    desc = home.get("description") if isinstance(home.get("description"), dict) else {}

    images: list[ImageRef] = []
    for photo in home.get("photos") or []:
        if isinstance(photo, str):
            images.append(ImageRef(url=photo))
        elif isinstance(photo, dict) and (photo.get("href") or photo.get("url")):
            images.append(ImageRef(url=photo.get("href") or photo.get("url"), alt=clean_str(photo.get("title"))))

    advertiser = get_first(home, "advertisers", "buyers")
    advertiser = advertiser[0] if isinstance(advertiser, list) and advertiser else {}
    branding = home.get("branding") or []

    return Extraction(
        address=build_address(
            str(addr.get("line") or ""),
            str(addr.get("city") or ""),
            str(addr.get("state_code") or addr.get("state") or ""),
            str(addr.get("postal_code") or ""),
        ),
        pricing=pricing_from_number(get_first(home, "list_price", "price"), home.get("price_per_sqft")),
        images=dedupe_images(images),
        details=PropertyDetails(
            beds=to_float(get_first(desc, "beds", "bedrooms")),
            baths=to_float(get_first(desc, "baths", "bathrooms", "baths_consolidated")),
            sqft=to_int(get_first(desc, "sqft", "livingArea")),
            year_built=to_int(get_first(desc, "year_built", "yearBuilt")),
            lot_size=lot_size_text(get_first(desc, "lot_sqft", "lotSize")),
            property_type=clean_str(get_first(desc, "type", "sub_type")),
            description=clean_str(desc.get("text")),
        ),
        listing=ListingInfo(
            mls_number=clean_str(get_nested(home, "source.listing_id")),
            agent_name=clean_str(advertiser.get("name")) if isinstance(advertiser, dict) else None,
            office_name=clean_str(
                get_nested(advertiser, "office.name")
                or (branding[0].get("name") if branding and isinstance(branding[0], dict) else None)
            ),
            status=clean_str(home.get("status")),
            list_date=clean_str(home.get("list_date")),
        ),
        raw_extra={
            "property_id": home.get("property_id"),
            "tax_history": home.get("tax_history") or [],
            "nearby_schools": get_nested(home, "nearby_schools.schools") or [],
            "flood_risk": get_nested(home, "local.flood.flood_factor_severity"),
            "fire_risk": get_nested(home, "local.wildfire.fire_factor_severity"),
            "noise_score": get_nested(home, "local.noise.score"),
            "href": home.get("href"),
            "permalink": home.get("permalink"),
            "last_sold_price": home.get("last_sold_price"),
            "last_sold_date": home.get("last_sold_date"),
        },
    )
