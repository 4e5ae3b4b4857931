# listing_ingest/domain/sites.py
from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlsplit

from .types import ListingSource

# Ordered: first match wins.
SITE_RULES: tuple[tuple[ListingSource, re.Pattern[str]], ...] = (
    (ListingSource.flexmls, re.compile(r"^https?://(www\.)?flexmls\.com/share/.+", re.IGNORECASE)),
    (ListingSource.zillow, re.compile(r"^https?://(www\.)?zillow\.com/homedetails/.+", re.IGNORECASE)),
    (ListingSource.realtor, re.compile(r"^https?://(www\.)?realtor\.com/realestateandhomes-detail/.+", re.IGNORECASE)),
    (ListingSource.trulia, re.compile(r"^https?://(www\.)?trulia\.com/(p|home)/.+", re.IGNORECASE)),
)

SITE_NAMES: dict[ListingSource, str] = {
    ListingSource.flexmls: "FlexMLS",
    ListingSource.zillow: "Zillow",
    ListingSource.realtor: "Realtor.com",
    ListingSource.trulia: "Trulia",
    ListingSource.external_api: "External API",
    ListingSource.unknown: "Unknown",
}


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(host)


def detect_source(url: Any) -> ListingSource:
    """Classify a listing URL. Never raises; malformed input is `unknown`."""
    if not is_valid_url(url):
        return ListingSource.unknown
    url = url.strip()
    for source, pattern in SITE_RULES:
        if pattern.match(url):
            return source
    return ListingSource.unknown


def is_supported_site(url: Any) -> bool:
    return detect_source(url) is not ListingSource.unknown


def site_name(source: ListingSource) -> str:
    return SITE_NAMES.get(source, "Unknown")
