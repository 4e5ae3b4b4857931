# listing_ingest/adapters/parsers/realtor.py
from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

from ...domain.address import build_address
from ...domain.errors import ValidationError
from ...domain.parsing import get_nested
from ...domain.types import ListingSource, UrlAddress
from .base import ListingParser, path_parts
from .extraction import Extraction, from_json_ld, from_realtor_home, json_ld_objects, next_data, og_image, soup_of

DETAIL = "/realestateandhomes-detail/"
SEARCH = "/realestateandhomes-search/"

# Where the property payload has lived in realtor.com's Next.js state over time.
_PAYLOAD_PATHS = (
    "props.pageProps.initialReduxState.propertyDetails",
    "props.pageProps.initialProps.property",
    "props.pageProps.property",
    "props.pageProps.listing",
)


class RealtorParser(ListingParser):
    """realtor.com/realestateandhomes-detail/{street}_{city}_{ST}_{zip}_{id}"""

    source = ListingSource.realtor
    name = "Realtor.com"

    def can_handle(self, url: str) -> bool:
        try:
            parts = urlsplit(url)
        except ValueError:
            return False
        host = (parts.hostname or "").lower()
        if not (host == "realtor.com" or host.endswith(".realtor.com")):
            return False
        return DETAIL in parts.path or SEARCH in parts.path

    def confidence(self, url: str) -> float:
        if not self.can_handle(url):
            return 0.0
        path = urlsplit(url).path
        if DETAIL in path:
            return 0.95
        if SEARCH in path:
            return 0.5
        return 0.6

    def extract_address_from_url(self, url: str) -> UrlAddress:
        parts = path_parts(url)
        if len(parts) < 2 or parts[0] != "realestateandhomes-detail":
            raise ValidationError(f"Invalid Realtor.com URL format: {url}")

        slug = parts[1].split("_")
        if len(slug) < 4:
            raise ValidationError(f"Invalid Realtor.com address slug: {parts[1]}")

        street = slug[0].replace("-", " ")
        city = slug[1].replace("-", " ")
        state, zip_code = slug[2], slug[3]
        property_id = slug[4] if len(slug) >= 5 else ""
        return UrlAddress(
            source_id=property_id or zip_code,
            address=build_address(street, city, state, zip_code),
        )

    def extract(self, html: str, url: str, *, full: bool) -> Extraction:
        soup = soup_of(html)
        home = _find_payload(next_data(soup))
        if home is not None:
            return from_realtor_home(home)

        fallback = from_json_ld(json_ld_objects(soup)) or Extraction()
        fallback.diagnostics.append("realtor: no property payload in __NEXT_DATA__")
        if not fallback.images and (img := og_image(soup)):
            fallback.images.append(img)
        return fallback


def _find_payload(data: dict[str, Any] | None) -> dict[str, Any] | None:
    if not data:
        return None
    for path in _PAYLOAD_PATHS:
        home = get_nested(data, path)
        if isinstance(home, dict) and (home.get("location") or home.get("list_price")):
            return home
    return None
