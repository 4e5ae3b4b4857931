# listing_ingest/domain/parsing.py
from __future__ import annotations

import re
from typing import Any

_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def to_int(x: Any) -> int | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    if isinstance(x, str):
        x = x.replace(",", "").replace("$", "").strip()
    try:
        return int(float(x))
    except (TypeError, ValueError):
        return None


def to_float(x: Any) -> float | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    if isinstance(x, str):
        x = x.replace(",", "").replace("$", "").strip()
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def first_number(text: str | None) -> float | None:
    """'1,850 sqft' -> 1850.0, '2.5 baths' -> 2.5."""
    if not text:
        return None
    m = _NUMBER_RE.search(text)
    if not m:
        return None
    return to_float(m.group(0))


def format_money(n: int | float | None) -> str:
    if n is None:
        return ""
    return f"${int(round(n)):,}"


def clean_str(x: Any) -> str | None:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def get_first(payload: dict[str, Any], *keys: str) -> Any:
    """Return first non-empty key from payload."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


def get_nested(payload: Any, path: str) -> Any:
    """Tiny dot-path getter: 'location.address.city'. Integer parts index lists."""
    cur: Any = payload
    for part in path.split("."):
        if isinstance(cur, dict):
            cur = cur.get(part)
        elif isinstance(cur, list) and part.isdigit():
            idx = int(part)
            cur = cur[idx] if idx < len(cur) else None
        else:
            return None
        if cur is None:
            return None
    return cur
