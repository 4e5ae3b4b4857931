# tests/conftest.py
import json

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from listing_ingest.adapters.browser.base import BrowserProfile, RenderedPage
from listing_ingest.models import Base, Collection
from listing_ingest.services.parser_factory import build_default_factory

OWNER = "owner-1"


class FakeRenderer:
    """Serves canned HTML per URL and records every fetch."""

    def __init__(self, pages=None, *, default_html="<html><body></body></html>"):
        self.pages = dict(pages or {})
        self.default_html = default_html
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, BrowserProfile]] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def render(self, url: str, profile: BrowserProfile) -> RenderedPage:
        self.calls.append((url, profile))
        if url in self.errors:
            raise self.errors[url]
        entry = self.pages.get(url, self.default_html)
        status, html = entry if isinstance(entry, tuple) else (200, entry)
        return RenderedPage(url=url, final_url=url, status=status, html=html)

    @property
    def urls(self) -> list[str]:
        return [u for u, _ in self.calls]


def next_data_page(payload: dict) -> str:
    return (
        "<html><head>"
        f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(payload)}</script>'
        "</head><body></body></html>"
    )


def zillow_page(*, street="123 Main St", city="Louisville", state="KY", zipcode="40202",
                price=350000, beds=3, baths=2, sqft=1850, photos=2) -> str:
    prop = {
        "zpid": 12345,
        "address": {"streetAddress": street, "city": city, "state": state, "zipcode": zipcode},
        "price": price,
        "bedrooms": beds,
        "bathrooms": baths,
        "livingArea": sqft,
        "yearBuilt": 1998,
        "homeType": "SINGLE_FAMILY",
        "homeStatus": "FOR_SALE",
        "description": "Bright brick ranch close to the park.",
        "responsivePhotos": [
            {"caption": f"photo {i}", "mixedSources": {"jpeg": [{"url": f"https://photos.example/{i}.jpg"}]}}
            for i in range(photos)
        ],
        "attributionInfo": {"agentName": "Pat Agent", "brokerName": "Acme Realty", "mlsId": "MLS123"},
    }
    cache = {'ForSaleShopperPlatformFullRenderQuery{"zpid":12345}': {"property": prop}}
    return next_data_page({"props": {"pageProps": {"componentProps": {"gdpClientCache": json.dumps(cache)}}}})


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def file_engine(tmp_path):
    """On-disk DB with one connection per session, for tests that race writers."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seeded_collection(async_session_maker):
    async with async_session_maker() as session:
        col = Collection(owner_id=OWNER, name="Spring tour", is_active=True)
        session.add(col)
        await session.commit()
        return col


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def factory(renderer):
    return build_default_factory(renderer, min_request_delay_s=0, pre_nav_delay_s=(0.0, 0.0))
