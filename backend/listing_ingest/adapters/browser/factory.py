# listing_ingest/adapters/browser/factory.py
from __future__ import annotations

from ...config import settings
from .base import PageRenderer
from .http_renderer import HttpxRenderer


def build_renderer(kind: str | None = None) -> PageRenderer:
    kind = (kind or settings.RENDERER).strip().lower()
    if kind == "httpx":
        return HttpxRenderer()
    if kind == "playwright":
        # Heavy import; only pay for it when the browser is actually wanted.
        from .playwright_renderer import PlaywrightRenderer

        return PlaywrightRenderer()
    raise ValueError(f"Unknown RENDERER={kind!r} (expected httpx|playwright)")
