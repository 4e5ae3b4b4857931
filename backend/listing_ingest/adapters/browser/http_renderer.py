# listing_ingest/adapters/browser/http_renderer.py
from __future__ import annotations

import logging
from dataclasses import dataclass

import certifi
import httpx

from ...config import settings
from ...domain.errors import TransientNetworkError
from .base import BrowserProfile, RenderedPage

log = logging.getLogger(__name__)


@dataclass
class RendererHealth:
    fetched: int = 0
    errors: int = 0
    last_error: str | None = None


class HttpxRenderer:
    """
    Static fetch: no JavaScript, no scrolling. Good enough for pages that ship
    their listing data inline (__NEXT_DATA__, JSON-LD), and cheap.

    SSL strategy:
      - default: verify SSL using certifi bundle
      - HTTP_CA_BUNDLE overrides the bundle path
      - dev-only escape hatch: HTTP_VERIFY_SSL=0 (do not use in prod)
    """

    def __init__(
        self,
        *,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_s = float(timeout_s if timeout_s is not None else settings.RENDER_NAV_TIMEOUT_S)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.health = RendererHealth()

    def _http_verify(self) -> bool | str:
        if not settings.HTTP_VERIFY_SSL:
            return False
        if settings.HTTP_CA_BUNDLE:
            return settings.HTTP_CA_BUNDLE
        return certifi.where()

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_s),
            follow_redirects=True,
            verify=self._http_verify(),
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpxRenderer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def render(self, url: str, profile: BrowserProfile) -> RenderedPage:
        if self._client is None:
            raise RuntimeError("HttpxRenderer.render() called before start()")

        self.health.fetched += 1
        headers = {"User-Agent": profile.user_agent, **profile.extra_headers}
        try:
            r = await self._client.get(url, headers=headers)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            self.health.errors += 1
            self.health.last_error = f"{type(e).__name__}: {e}"
            raise TransientNetworkError(f"fetch failed for {url}: {type(e).__name__}") from e

        return RenderedPage(url=url, final_url=str(r.url), status=r.status_code, html=r.text)
