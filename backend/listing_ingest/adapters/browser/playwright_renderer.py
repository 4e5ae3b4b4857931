# listing_ingest/adapters/browser/playwright_renderer.py
from __future__ import annotations

import logging

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ...config import settings
from ...domain.errors import TransientNetworkError
from .base import BrowserProfile, RenderedPage
from .http_renderer import RendererHealth

log = logging.getLogger(__name__)

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = { runtime: {}, loadTimes: function () {}, csi: function () {} };
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
"""


class PlaywrightRenderer:
    """
    Headless Chromium. One browser per process; one fresh context per page so
    user agent / viewport can differ between visits.
    """

    def __init__(
        self,
        *,
        headless: bool | None = None,
        nav_timeout_s: float | None = None,
        ready_timeout_s: float | None = None,
    ) -> None:
        self.headless = settings.RENDER_HEADLESS if headless is None else headless
        self.nav_timeout_ms = int(1000 * (nav_timeout_s or settings.RENDER_NAV_TIMEOUT_S))
        self.ready_timeout_ms = int(1000 * (ready_timeout_s or settings.RENDER_READY_TIMEOUT_S))
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self.health = RendererHealth()

    async def start(self) -> None:
        if self._browser is not None:
            return
        self._pw = await async_playwright().start()
        self._browser = await self._pw.chromium.launch(
            headless=self.headless,
            args=["--no-sandbox", "--disable-blink-features=AutomationControlled"],
        )
        log.info("Chromium started (headless=%s)", self.headless)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._pw is not None:
            await self._pw.stop()
            self._pw = None
            log.info("Chromium stopped")

    async def __aenter__(self) -> PlaywrightRenderer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def render(self, url: str, profile: BrowserProfile) -> RenderedPage:
        if self._browser is None:
            raise RuntimeError("PlaywrightRenderer.render() called before start()")

        self.health.fetched += 1
        context = await self._browser.new_context(
            user_agent=profile.user_agent,
            viewport={"width": profile.viewport_width, "height": profile.viewport_height},
            extra_http_headers=profile.extra_headers,
            locale="en-US",
        )
        try:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            page = await context.new_page()

            resp = await page.goto(url, wait_until=profile.wait_until, timeout=self.nav_timeout_ms)
            status = resp.status if resp is not None else 0

            if 0 < status < 400:
                await page.wait_for_selector("body", timeout=self.ready_timeout_ms)
                if profile.simulate_scroll:
                    await _scroll_like_a_person(page)

            html = await page.content()
            return RenderedPage(url=url, final_url=page.url, status=status, html=html)
        except PlaywrightTimeoutError as e:
            self.health.errors += 1
            self.health.last_error = f"timeout: {e}"
            raise TransientNetworkError(f"page load timed out for {url}") from e
        except PlaywrightError as e:
            self.health.errors += 1
            self.health.last_error = str(e)
            raise TransientNetworkError(f"browser navigation failed for {url}: {e}") from e
        finally:
            await context.close()


async def _scroll_like_a_person(page) -> None:
    await page.evaluate("window.scrollTo(0, document.body.scrollHeight / 2)")
    await page.wait_for_timeout(1000)
    await page.evaluate("window.scrollTo(0, 0)")
    await page.wait_for_timeout(500)
