# listing_ingest/domain/address.py
from __future__ import annotations

import re
from urllib.parse import urlsplit

from .types import Address

_NON_WORD = re.compile(r"[^\w\s]")
_WS = re.compile(r"\s+")
_ZIP_TAIL = re.compile(r"\s*\b\d{5}(?:-\d{4})?$")


def normalize_address(text: str | None) -> str:
    """
    Duplicate-detection key: lowercased, punctuation stripped, whitespace collapsed.
    "123 Main St., Louisville, KY 40205" -> "123 main st louisville ky 40205"
    """
    if not text:
        return ""
    s = _NON_WORD.sub("", text.lower())
    return _WS.sub(" ", s).strip()


def compose_full(street: str, city: str, state: str, zip_code: str) -> str:
    state_zip = " ".join(p for p in (state, zip_code) if p)
    return ", ".join(p for p in (street, city, state_zip) if p)


def build_address(street: str = "", city: str = "", state: str = "", zip_code: str = "") -> Address:
    street, city, state, zip_code = (x.strip() for x in (street, city, state, zip_code))
    return Address(
        street=street,
        city=city,
        state=state,
        zip=zip_code,
        full=compose_full(street, city, state, zip_code),
    )


def strip_zip_suffix(city: str) -> str:
    return _ZIP_TAIL.sub("", city).strip()


def placeholder_address(url: str) -> Address:
    """Shown until a real address is known. Never empty."""
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").removeprefix("www.")
        path = parts.path.rstrip("/")
    except ValueError:
        host, path = "", ""
    label = f"{host}{path}"[:120] or "unknown source"
    return Address(full=f"Listing at {label}", is_placeholder=True)


def merge_address(base: Address, override: Address | None, *, url: str) -> Address:
    """
    URL-derived fields are the base; non-empty extracted fields win.
    Falls back to a placeholder so `full` is never empty.
    """
    if override is None:
        override = Address()
    street = override.street or base.street
    city = override.city or base.city
    state = override.state or base.state
    zip_code = override.zip or base.zip

    if street or city or state or zip_code:
        merged = build_address(street, city, state, zip_code)
        if override.full and not (override.street or override.city):
            return Address(merged.street, merged.city, merged.state, merged.zip, override.full)
        return merged
    if override.full:
        return Address(full=override.full)
    if base.full:
        return base
    return placeholder_address(url)


PRICE_BUCKETS: tuple[tuple[int, str], ...] = (
    (200_000, "under_200k"),
    (300_000, "200k_300k"),
    (500_000, "300k_500k"),
    (750_000, "500k_750k"),
    (1_000_000, "750k_1m"),
)


def price_range(price: int | float | None) -> str | None:
    if price is None or price <= 0:
        return None
    for ceiling, label in PRICE_BUCKETS:
        if price < ceiling:
            return label
    return "over_1m"
