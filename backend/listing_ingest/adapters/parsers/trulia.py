# listing_ingest/adapters/parsers/trulia.py
from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlsplit

from ...domain.address import build_address
from ...domain.errors import ValidationError
from ...domain.parsing import clean_str, get_first, get_nested, to_float, to_int
from ...domain.types import Address, ImageRef, ListingInfo, ListingSource, PropertyDetails, UrlAddress
from .base import ListingParser, path_parts
from .extraction import (
    Extraction,
    dedupe_images,
    from_json_ld,
    json_ld_objects,
    lot_size_text,
    next_data,
    og_image,
    pricing_from_number,
    soup_of,
)

_ZIP = re.compile(r"^\d{5}$")


def _cap(word: str) -> str:
    return word[:1].upper() + word[1:]


class TruliaParser(ListingParser):
    """
    Two URL shapes:
      /home/{street-words}-{city}-{st}-{zip}-{id}
      /p/{st}/{city}/{street-words}-{city}-{st}-{zip}--{id}
    """

    source = ListingSource.trulia
    name = "Trulia"

    def can_handle(self, url: str) -> bool:
        try:
            parts = urlsplit(url)
        except ValueError:
            return False
        host = (parts.hostname or "").lower()
        if not (host == "trulia.com" or host.endswith(".trulia.com")):
            return False
        return "/p/" in parts.path or "/home/" in parts.path

    def confidence(self, url: str) -> float:
        if not self.can_handle(url):
            return 0.0
        parts = path_parts(url)
        if len(parts) >= 2 and parts[0] == "home":
            return 0.95
        if len(parts) >= 4 and parts[0] == "p" and "--" in parts[-1]:
            return 0.95
        return 0.6

    def extract_address_from_url(self, url: str) -> UrlAddress:
        parts = path_parts(url)
        if len(parts) < 2:
            raise ValidationError(f"Invalid Trulia URL format: {url}")
        if parts[0] == "home":
            return _decode_home_slug(parts[1])
        if parts[0] == "p":
            return _decode_p_path(parts)
        raise ValidationError(f"Unsupported Trulia URL format: {url}")

    def extract(self, html: str, url: str, *, full: bool) -> Extraction:
        soup = soup_of(html)
        page_props = get_nested(next_data(soup) or {}, "props.pageProps")
        if not isinstance(page_props, dict):
            fallback = from_json_ld(json_ld_objects(soup)) or Extraction()
            fallback.diagnostics.append("trulia: no pageProps in __NEXT_DATA__")
            if not fallback.images and (img := og_image(soup)):
                fallback.images.append(img)
            return fallback

        prop = page_props.get("pdpData") or page_props.get("property") or page_props
        if not isinstance(prop, dict):
            return Extraction(diagnostics=["trulia: property payload is not an object"])
        return _map_property(prop)


def _decode_home_slug(slug: str) -> UrlAddress:
    words = slug.split("-")
    if len(words) < 5:
        raise ValidationError(f"Invalid Trulia /home/ slug: {slug}")

    property_id, zip_code, state = words[-1], words[-2], words[-3].upper()
    rest = words[:-3]
    city = _cap(rest[-1])
    street = " ".join(_cap(w) for w in rest[:-1])
    return UrlAddress(source_id=property_id, address=build_address(street, city, state, zip_code))


def _decode_p_path(parts: list[str]) -> UrlAddress:
    if len(parts) < 4:
        raise ValidationError("Invalid /p/ format Trulia URL")

    state, city_slug, tail = parts[1], parts[2], parts[3]
    slug, _, property_id = tail.partition("--")
    words = slug.split("-")

    zip_code = ""
    if words and _ZIP.match(words[-1]):
        zip_code = words.pop()
    if words and words[-1].lower() == state.lower():
        words.pop()

    city_words = city_slug.split("-")
    n = len(city_words)
    if n <= len(words) and [w.lower() for w in words[-n:]] == [w.lower() for w in city_words]:
        words = words[:-n]

    street = " ".join(_cap(w) for w in words)
    city = " ".join(_cap(w) for w in city_words)
    return UrlAddress(source_id=property_id, address=build_address(street, city, state.upper(), zip_code))


def _map_property(p: dict[str, Any]) -> Extraction:
    photos = p.get("photos") or p.get("images") or p.get("media") or []
    images: list[ImageRef] = []
    if isinstance(photos, list):
        for ph in photos:
            if isinstance(ph, str):
                images.append(ImageRef(url=ph))
            elif isinstance(ph, dict) and (u := get_first(ph, "url", "href", "src")):
                images.append(ImageRef(url=u, alt=clean_str(ph.get("caption") or ph.get("description"))))

    address: Address | None = None
    addr = p.get("address")
    if isinstance(addr, dict):
        address = build_address(
            str(get_first(addr, "streetAddress", "line") or ""),
            str(addr.get("city") or ""),
            str(get_first(addr, "state", "stateCode") or ""),
            str(get_first(addr, "zipcode", "postalCode") or ""),
        )

    agent = p.get("agent") if isinstance(p.get("agent"), dict) else {}
    office = p.get("office") if isinstance(p.get("office"), dict) else {}

    return Extraction(
        address=address,
        pricing=pricing_from_number(p.get("price")),
        images=dedupe_images(images),
        details=PropertyDetails(
            beds=to_float(get_first(p, "bedrooms", "beds")),
            baths=to_float(get_first(p, "bathrooms", "baths")),
            sqft=to_int(get_first(p, "livingArea", "sqft")),
            year_built=to_int(p.get("yearBuilt")),
            lot_size=lot_size_text(p.get("lotSize")),
            property_type=clean_str(get_first(p, "propertyType", "type")),
            description=clean_str(p.get("description")) if isinstance(p.get("description"), str) else None,
        ),
        listing=ListingInfo(
            mls_number=clean_str(p.get("mlsId")),
            agent_name=clean_str(agent.get("name") or p.get("listingAgent")),
            office_name=clean_str(p.get("brokerName") or office.get("name")),
            status=clean_str(get_first(p, "status", "listingStatus")),
            list_date=clean_str(p.get("listDate")),
        ),
    )
