# listing_ingest/adapters/parsers/base.py
from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime
from urllib.parse import urlsplit

from ...config import settings
from ...domain.address import merge_address
from ...domain.errors import BlockedError, PermanentParseError, TransientNetworkError, ValidationError
from ...domain.types import Address, ListingSource, ParsedProperty, UrlAddress
from ..browser.base import BrowserProfile, PageRenderer, RenderedPage, quick_profile, stealth_profile
from .extraction import Extraction
from .rate_gate import RateGate

log = logging.getLogger(__name__)


def path_parts(url: str) -> list[str]:
    return [p for p in urlsplit(url).path.split("/") if p]


class ListingParser(ABC):
    """
    One listing site. Subclasses decode the site's URL shape and map its page
    payload; fetching, politeness and result assembly live here.
    """

    source: ListingSource = ListingSource.unknown
    name: str = "base"

    def __init__(
        self,
        renderer: PageRenderer,
        *,
        min_request_delay_s: float | None = None,
        pre_nav_delay_s: tuple[float, float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.renderer = renderer
        self.gate = RateGate(
            settings.PARSER_MIN_REQUEST_DELAY_S if min_request_delay_s is None else min_request_delay_s
        )
        self.pre_nav_delay_s = pre_nav_delay_s or (
            settings.PARSER_PRE_NAV_DELAY_MIN_S,
            settings.PARSER_PRE_NAV_DELAY_MAX_S,
        )
        self._rng = rng or random.Random()

    # ----- capability set -----

    @abstractmethod
    def can_handle(self, url: str) -> bool: ...

    @abstractmethod
    def confidence(self, url: str) -> float: ...

    @abstractmethod
    def extract_address_from_url(self, url: str) -> UrlAddress:
        """Pure: decode source id + address from the URL alone. ValidationError if the shape is off."""

    @abstractmethod
    def extract(self, html: str, url: str, *, full: bool) -> Extraction: ...

    async def quick_parse(self, url: str) -> ParsedProperty:
        page = await self._fetch(url, quick_profile())
        extracted = self._extract_safely(page.html, url, full=False).trimmed_for_quick()
        return self._assemble(url, extracted, quick=True)

    async def parse(self, url: str) -> ParsedProperty:
        lo, hi = self.pre_nav_delay_s
        if hi > 0:
            await asyncio.sleep(self._rng.uniform(lo, hi))
        page = await self._fetch(url, stealth_profile(self._rng))
        return self._assemble(url, self._extract_safely(page.html, url, full=True), quick=False)

    # ----- shared plumbing -----

    def _extract_safely(self, html: str, url: str, *, full: bool) -> Extraction:
        """A page shaped unlike what `extract` expects degrades to URL-only data."""
        try:
            return self.extract(html, url, full=full)
        except Exception as e:
            log.exception("%s extraction crashed for %s", self.name, url)
            note = f"{self.name.lower()}: unexpected page structure ({type(e).__name__}: {e})"
            return Extraction(diagnostics=[note])

    async def _fetch(self, url: str, profile: BrowserProfile) -> RenderedPage:
        if not self.can_handle(url):
            raise ValidationError(f"{self.name} parser cannot handle {url}")

        await self.gate.wait()
        log.info("%s fetch %s (ua=%s, viewport=%sx%s)", self.name, url, profile.user_agent[:40],
                 profile.viewport_width, profile.viewport_height)
        page = await self.renderer.render(url, profile)

        if page.status in (403, 429):
            raise BlockedError(
                f"{self.name} blocked the request (HTTP {page.status}); back off before retrying",
                status_code=page.status,
                url=url,
            )
        if page.status >= 500:
            raise TransientNetworkError(f"HTTP {page.status} from {self.name}", status_code=page.status)
        if page.status >= 400:
            raise PermanentParseError(f"HTTP {page.status} when accessing {self.name} URL")
        return page

    def _assemble(self, url: str, extracted: Extraction, *, quick: bool) -> ParsedProperty:
        diagnostics = list(extracted.diagnostics)
        try:
            from_url = self.extract_address_from_url(url)
        except ValidationError as e:
            diagnostics.append(f"url_address: {e}")
            from_url = UrlAddress(source_id=url, address=Address())

        if diagnostics:
            log.warning("%s degraded extraction for %s: %s", self.name, url, "; ".join(diagnostics))

        return ParsedProperty(
            source_id=from_url.source_id,
            source=self.source,
            address=merge_address(from_url.address, extracted.address, url=url),
            source_url=url,
            pricing=extracted.pricing,
            images=tuple(extracted.images),
            details=extracted.details,
            listing=extracted.listing,
            raw_extra=dict(extracted.raw_extra),
            extracted_at=datetime.utcnow(),
            is_quick=quick,
            diagnostics=tuple(diagnostics),
        )
