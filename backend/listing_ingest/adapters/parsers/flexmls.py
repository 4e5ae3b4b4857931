# listing_ingest/adapters/parsers/flexmls.py
from __future__ import annotations

import json
import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from ...domain.address import compose_full, strip_zip_suffix
from ...domain.errors import ValidationError
from ...domain.parsing import first_number, to_int
from ...domain.types import Address, ImageRef, ListingInfo, ListingSource, PropertyDetails, UrlAddress
from .base import ListingParser, path_parts
from .extraction import (
    Extraction,
    body_text,
    dedupe_images,
    find_pattern,
    first_img_src,
    first_text,
    og_image,
    pricing_from_text,
    soup_of,
)

PRICE_SELECTORS = (
    '[data-testid="listing-price"]',
    '[data-testid="price"]',
    ".listing-price",
    ".price",
    ".property-price",
    ".list-price",
    ".current-price",
    'span[class*="price"]',
    'div[class*="price"]',
    'h1[class*="price"]',
    'h2[class*="price"]',
    ".price-container",
    ".pricing",
)
HERO_IMAGE_SELECTORS = (
    '[data-testid="hero-image"] img',
    ".hero-image img",
    ".property-images img:first-child",
    ".listing-photos img:first-child",
    'img[src*="mls"]',
)
BEDS_SELECTORS = ('[data-testid="beds"]', ".beds", ".bed-count", ".property-beds", ".bedroom-count")
BATHS_SELECTORS = ('[data-testid="baths"]', ".baths", ".bath-count", ".property-baths", ".bathroom-count")
SQFT_SELECTORS = ('[data-testid="sqft"]', ".sqft", ".square-feet", ".property-sqft", ".square-footage")
GALLERY_SELECTORS = (
    'img[src*="flexmls"]',
    'img[data-src*="flexmls"]',
    ".gallery img",
    ".photos img",
    ".property-photos img",
    ".listing-photos img",
    ".image-gallery img",
    ".photo-gallery img",
    ".property-image img",
)

_DOLLAR = re.compile(r"\$[\d,]+")
_IMG_SRC = re.compile(r'src="([^"]+)"')
_IMG_ALT = re.compile(r'alt="([^"]+)"')
_JUNK_IMAGE = ("logo", "icon", "button", "banner", "avatar", "maps.google", "googleapis.com", "gstatic.com", "streetview")
_LISTING_CDNS = ("cdn.resize.sparkplatform.com", "cdn.assets.flexmls.com")

BEDS_PATTERNS = (r"(\d+)\s*bed(?:room)?s?", r"bed(?:room)?s?\s*:?\s*(\d+)", r"(\d+)\s*bd\b", r"(\d+)\s*br\b")
BATHS_PATTERNS = (r"(\d+(?:\.\d+)?)\s*bath(?:room)?s?", r"bath(?:room)?s?\s*:?\s*(\d+(?:\.\d+)?)", r"(\d+(?:\.\d+)?)\s*ba\b")
SQFT_PATTERNS = (r"([\d,]+)\s*sq\.?\s*ft", r"([\d,]+)\s*square\s*feet?", r"sq\.?\s*ft\.?\s*:?\s*([\d,]+)", r"sqft\s*:?\s*([\d,]+)")
MLS_PATTERNS = (r"mls\s*#?\s*:?\s*([A-Z0-9]{5,})", r"listing\s*#\s*:?\s*([A-Z0-9]{5,})")
DESCRIPTION_PATTERNS = (
    r"description[:\s]+(.{21,}?)(?:\n\n|\n[A-Z]|$)",
    r"remarks[:\s]+(.{21,}?)(?:\n\n|\n[A-Z]|$)",
    r"about this property[:\s]+(.{21,}?)(?:\n\n|\n[A-Z]|$)",
)
_DESCRIPTION_WORDS = ("bedroom", "kitchen", "living", "home", "property", "house")


class FlexmlsParser(ListingParser):
    """flexmls.com/share/{shareId}/{street-words-City-ST-zip}"""

    source = ListingSource.flexmls
    name = "FlexMLS"

    def can_handle(self, url: str) -> bool:
        try:
            parts = urlsplit(url)
        except ValueError:
            return False
        host = (parts.hostname or "").lower()
        return (host == "flexmls.com" or host.endswith(".flexmls.com")) and "/share/" in parts.path

    def confidence(self, url: str) -> float:
        if not self.can_handle(url):
            return 0.0
        parts = path_parts(url)
        if len(parts) >= 3 and parts[0] == "share":
            return 1.0
        return 0.5

    def extract_address_from_url(self, url: str) -> UrlAddress:
        parts = path_parts(url)
        if len(parts) < 3 or parts[0] != "share":
            raise ValidationError(f"Invalid FlexMLS URL format: {url}")

        share_id = parts[1]
        slug = parts[2].split("-")
        if len(slug) < 4:
            raise ValidationError(f"Invalid FlexMLS property slug: {parts[2]}")

        zip_code, state = slug[-1], slug[-2]
        city = strip_zip_suffix(slug[-3])
        street = " ".join(slug[:-3])
        full = _dedupe_city(compose_full(street, city, state, zip_code), city)
        return UrlAddress(
            source_id=share_id,
            address=Address(street=street, city=city, state=state, zip=zip_code, full=full),
        )

    def extract(self, html: str, url: str, *, full: bool) -> Extraction:
        soup = soup_of(html)
        out = _quick_fields(soup)
        if not full:
            return out

        text = body_text(soup)
        images = _media_json_images(soup) or _gallery_images(soup)
        if images:
            out.images = images
        elif not out.images and (img := og_image(soup)):
            out.images = [img]

        d = out.details
        out.details = PropertyDetails(
            beds=d.beds if d.beds is not None else first_number(find_pattern(text, BEDS_PATTERNS)),
            baths=d.baths if d.baths is not None else first_number(find_pattern(text, BATHS_PATTERNS)),
            sqft=d.sqft if d.sqft is not None else to_int(find_pattern(text, SQFT_PATTERNS)),
            description=_description(text),
        )
        if not out.pricing.numeric_price:
            out.pricing = pricing_from_text(text)
        out.listing = ListingInfo(mls_number=find_pattern(text, MLS_PATTERNS))

        if not out.pricing.numeric_price and not out.images:
            out.diagnostics.append("flexmls: no price or photos found on page")
        return out


def _quick_fields(soup: BeautifulSoup) -> Extraction:
    hero = first_img_src(soup, HERO_IMAGE_SELECTORS)
    beds = first_text(soup, BEDS_SELECTORS)
    baths = first_text(soup, BATHS_SELECTORS)
    sqft = first_text(soup, SQFT_SELECTORS)
    sqft_n = first_number(sqft)
    return Extraction(
        pricing=pricing_from_text(first_text(soup, PRICE_SELECTORS, pattern=_DOLLAR)),
        images=[hero] if hero else [],
        details=PropertyDetails(
            beds=first_number(beds),
            baths=first_number(baths),
            sqft=int(sqft_n) if sqft_n is not None else None,
        ),
    )


def _media_json_images(soup: BeautifulSoup) -> list[ImageRef]:
    """FlexMLS embeds the gallery as JSON in #tagged_listing_media (combined.All[].html)."""
    tag = soup.select_one("#tagged_listing_media")
    if tag is None:
        return []
    try:
        data = json.loads(tag.string or tag.get_text() or "")
    except ValueError:
        return []
    items = (data.get("combined") or {}).get("All") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []

    out: list[ImageRef] = []
    for item in items:
        html = item.get("html") if isinstance(item, dict) else None
        if not html:
            continue
        src = _IMG_SRC.search(html)
        if not src:
            continue
        alt = _IMG_ALT.search(html)
        out.append(ImageRef(url=src.group(1), alt=alt.group(1) if alt else None))
    return dedupe_images(out)


def _gallery_images(soup: BeautifulSoup) -> list[ImageRef]:
    found: list[ImageRef] = []
    for sel in GALLERY_SELECTORS:
        for img in soup.select(sel):
            src = img.get("src") or img.get("data-src") or img.get("data-lazy-src")
            if not src or src.startswith("data:") or src.lower().endswith(".svg"):
                continue
            if any(j in src.lower() for j in _JUNK_IMAGE):
                continue
            found.append(ImageRef(url=src, alt=img.get("alt") or None))
    found = dedupe_images(found)
    cdn = [i for i in found if any(c in i.url.lower() for c in _LISTING_CDNS)]
    return cdn or found


def _description(text: str) -> str | None:
    for p in DESCRIPTION_PATTERNS:
        m = re.search(p, text, re.IGNORECASE | re.DOTALL)
        if m and len(m.group(1).strip()) > 20:
            return m.group(1).strip()[:500]
    for line in text.split("\n"):
        if len(line.strip()) > 50 and any(w in line.lower() for w in _DESCRIPTION_WORDS):
            return line.strip()[:500]
    return None


def _dedupe_city(full: str, city: str) -> str:
    """Slugs sometimes repeat the city ("...-Louisville-Louisville-KY-40205")."""
    if city:
        esc = re.escape(city)
        full = re.sub(rf"({esc}[,\s]+)+{esc}", city, full, flags=re.IGNORECASE)
        parts = [p.strip() for p in full.split(",")]
        seen_city = False
        kept: list[str] = []
        for p in parts:
            if p.lower() == city.lower():
                if seen_city:
                    continue
                seen_city = True
            kept.append(p)
        full = ", ".join(kept)
    full = re.sub(r",\s*,", ",", full)
    full = re.sub(r"\s*,\s*", ", ", full)
    return re.sub(r"\s+", " ", full).strip().strip(",").strip()
