# listing_ingest/adapters/parsers/zillow.py
from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import urlsplit

from ...domain.address import build_address
from ...domain.errors import ValidationError
from ...domain.parsing import clean_str, get_nested, to_float, to_int
from ...domain.types import ImageRef, ListingInfo, ListingSource, PropertyDetails, UrlAddress
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

_CACHE_KEY_HINT = re.compile(r"ForSale|Property|VariantQuery")


def _host_ok(url: str) -> bool:
    host = (urlsplit(url).hostname or "").lower()
    return host == "zillow.com" or host.endswith(".zillow.com")


class ZillowParser(ListingParser):
    """zillow.com/homedetails/{street-city-ST-zip}/{zpid}_zpid/"""

    source = ListingSource.zillow
    name = "Zillow"

    def can_handle(self, url: str) -> bool:
        try:
            return _host_ok(url) and "/homedetails/" in urlsplit(url).path
        except ValueError:
            return False

    def confidence(self, url: str) -> float:
        if not self.can_handle(url):
            return 0.0
        parts = path_parts(url)
        if parts and parts[-1].endswith("_zpid"):
            return 1.0
        return 0.6

    def extract_address_from_url(self, url: str) -> UrlAddress:
        parts = path_parts(url)
        if len(parts) < 3 or parts[0] != "homedetails":
            raise ValidationError(f"Invalid Zillow URL format: {url}")

        zpid = parts[-1].replace("_zpid", "")
        slug = parts[1].split("-")
        if len(slug) < 4:
            raise ValidationError(f"Invalid Zillow address slug: {parts[1]}")

        zip_code, state, city = slug[-1], slug[-2], slug[-3]
        street = " ".join(slug[:-3])
        return UrlAddress(source_id=zpid, address=build_address(street, city, state, zip_code))

    def extract(self, html: str, url: str, *, full: bool) -> Extraction:
        soup = soup_of(html)
        home = _find_gdp_property(next_data(soup))
        if home is None:
            fallback = from_json_ld(json_ld_objects(soup)) or Extraction()
            fallback.diagnostics.append("zillow: no property payload in __NEXT_DATA__")
            if not fallback.images and (img := og_image(soup)):
                fallback.images.append(img)
            return fallback
        return _map_property(home)


def _find_gdp_property(data: dict[str, Any] | None) -> dict[str, Any] | None:
    cache = get_nested(data or {}, "props.pageProps.gdpClientCache")
    if cache is None:
        cache = get_nested(data or {}, "props.pageProps.componentProps.gdpClientCache")
    if isinstance(cache, str):
        try:
            cache = json.loads(cache)
        except ValueError:
            return None
    if not isinstance(cache, dict):
        return None

    for key, value in cache.items():
        if _CACHE_KEY_HINT.search(key) and isinstance(value, dict) and isinstance(value.get("property"), dict):
            return value["property"]
    return None


def _best_photo_url(photo: dict[str, Any]) -> str | None:
    sources = photo.get("mixedSources")
    if not isinstance(sources, dict):
        sources = {}
    for kind in ("webp", "jpeg"):
        variants = sources.get(kind)
        if isinstance(variants, list) and variants:
            last = variants[-1]
            if isinstance(last, dict) and last.get("url"):
                return last["url"]
    return photo.get("url")


def _map_property(p: dict[str, Any]) -> Extraction:
    photos = p.get("responsivePhotos") or p.get("photos")
    if not isinstance(photos, list):
        photos = []
    images = [
        ImageRef(url=u, alt=clean_str(ph.get("caption")))
        for ph in photos
        if isinstance(ph, dict) and (u := _best_photo_url(ph))
    ]

    addr = p.get("address") if isinstance(p.get("address"), dict) else {}
    attribution = p.get("attributionInfo") if isinstance(p.get("attributionInfo"), dict) else {}

    return Extraction(
        address=build_address(
            str(addr.get("streetAddress") or ""),
            str(addr.get("city") or ""),
            str(addr.get("state") or ""),
            str(addr.get("zipcode") or ""),
        ) if addr else None,
        pricing=pricing_from_number(p.get("price"), get_nested(p, "resoFacts.pricePerSquareFoot")),
        images=dedupe_images(images),
        details=PropertyDetails(
            beds=to_float(p.get("bedrooms")),
            baths=to_float(p.get("bathrooms")),
            sqft=to_int(p.get("livingArea")),
            year_built=to_int(p.get("yearBuilt")),
            lot_size=lot_size_text(p.get("lotSize")),
            property_type=clean_str(p.get("homeType")),
            description=clean_str(p.get("description")),
        ),
        listing=ListingInfo(
            mls_number=clean_str(attribution.get("mlsId")),
            agent_name=clean_str(attribution.get("agentName")),
            office_name=clean_str(attribution.get("brokerName")),
            status=clean_str(p.get("homeStatus")),
        ),
        raw_extra={"zpid": p.get("zpid"), "zestimate": p.get("zestimate")},
    )
