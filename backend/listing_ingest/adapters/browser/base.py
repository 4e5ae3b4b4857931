# listing_ingest/adapters/browser/base.py
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Protocol

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:132.0) Gecko/20100101 Firefox/132.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_6) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.6 Safari/605.1.15",
)

BROWSER_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
}


@dataclass(frozen=True)
class BrowserProfile:
    """How a single page visit should look to the remote site."""

    user_agent: str = USER_AGENTS[0]
    viewport_width: int = 1920
    viewport_height: int = 1080
    extra_headers: dict[str, str] = field(default_factory=lambda: dict(BROWSER_HEADERS))
    simulate_scroll: bool = False
    wait_until: str = "domcontentloaded"


@dataclass(frozen=True)
class RenderedPage:
    url: str
    final_url: str
    status: int
    html: str


class PageRenderer(Protocol):
    """
    Injected page-fetching capability. Started once at application startup,
    closed at shutdown, shared by every parser.
    """

    async def start(self) -> None: ...

    async def close(self) -> None: ...

    async def render(self, url: str, profile: BrowserProfile) -> RenderedPage: ...


def quick_profile() -> BrowserProfile:
    return BrowserProfile()


def stealth_profile(rng: random.Random | None = None) -> BrowserProfile:
    rng = rng or random.Random()
    return BrowserProfile(
        user_agent=rng.choice(USER_AGENTS),
        viewport_width=1920 + rng.randrange(100),
        viewport_height=1080 + rng.randrange(100),
        simulate_scroll=True,
        wait_until="networkidle",
    )
