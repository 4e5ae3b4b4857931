import json
import logging

import pytest

from conftest import FakeRenderer, next_data_page, zillow_page
from listing_ingest.adapters.parsers.flexmls import FlexmlsParser
from listing_ingest.adapters.parsers.realtor import RealtorParser
from listing_ingest.adapters.parsers.trulia import TruliaParser
from listing_ingest.adapters.parsers.zillow import ZillowParser
from listing_ingest.domain.errors import BlockedError, PermanentParseError, TransientNetworkError, ValidationError
from listing_ingest.domain.types import ListingSource

ZILLOW_URL = "https://www.zillow.com/homedetails/123-Main-St-Louisville-KY-40202/12345_zpid/"
REALTOR_URL = "https://www.realtor.com/realestateandhomes-detail/55-Oak-Dr_Lexington_KY_40502_M999"
TRULIA_URL = "https://www.trulia.com/home/7-pine-ct-austin-tx-78701-555"
FLEX_URL = "https://www.flexmls.com/share/ABC123/123-Main-St-Louisville-KY-40202"


def _parser(cls, pages):
    return cls(FakeRenderer(pages), min_request_delay_s=0, pre_nav_delay_s=(0.0, 0.0))


async def test_zillow_full_parse_reads_gdp_cache():
    parsed = await _parser(ZillowParser, {ZILLOW_URL: zillow_page()}).parse(ZILLOW_URL)

    assert parsed.source == ListingSource.zillow
    assert parsed.source_id == "12345"
    assert parsed.address.full == "123 Main St, Louisville, KY 40202"
    assert parsed.pricing.numeric_price == 350000
    assert parsed.pricing.display_price == "$350,000"
    assert parsed.details.beds == 3
    assert parsed.details.sqft == 1850
    assert len(parsed.images) == 2
    assert parsed.listing.agent_name == "Pat Agent"
    assert parsed.is_quick is False
    assert parsed.is_degraded is False


async def test_zillow_quick_parse_keeps_card_fields_only():
    parser = _parser(ZillowParser, {ZILLOW_URL: zillow_page(photos=4)})
    quick = await parser.quick_parse(ZILLOW_URL)

    assert quick.is_quick is True
    assert len(quick.images) == 1
    assert quick.details.beds == 3
    assert quick.details.description is None
    assert quick.listing.agent_name is None


async def test_realtor_parse_reads_next_data_payload():
    home = {
        "property_id": "M999",
        "list_price": 425000,
        "price_per_sqft": 212,
        "status": "for_sale",
        "location": {"address": {"line": "55 Oak Dr", "city": "Lexington", "state_code": "KY", "postal_code": "40502"}},
        "description": {"beds": 4, "baths": 2.5, "sqft": 2000, "year_built": 2004, "type": "single_family",
                        "text": "Updated kitchen."},
        "photos": [{"href": "https://ap.rdcpix.com/1.jpg"}, {"href": "https://ap.rdcpix.com/2.jpg"}],
        "advertisers": [{"name": "Sam Seller", "office": {"name": "Bluegrass Homes"}}],
        "source": {"listing_id": "KY-1234"},
    }
    page = next_data_page({"props": {"pageProps": {"initialReduxState": {"propertyDetails": home}}}})
    parsed = await _parser(RealtorParser, {REALTOR_URL: page}).parse(REALTOR_URL)

    assert parsed.address.full == "55 Oak Dr, Lexington, KY 40502"
    assert parsed.pricing.numeric_price == 425000
    assert parsed.pricing.price_per_sqft == 212
    assert parsed.details.baths == 2.5
    assert parsed.details.description == "Updated kitchen."
    assert parsed.listing.mls_number == "KY-1234"
    assert parsed.listing.office_name == "Bluegrass Homes"
    assert [i.url for i in parsed.images] == ["https://ap.rdcpix.com/1.jpg", "https://ap.rdcpix.com/2.jpg"]


async def test_trulia_parse_falls_back_to_json_ld():
    ld = {
        "@context": "https://schema.org",
        "@type": "SingleFamilyResidence",
        "address": {"streetAddress": "7 Pine Ct", "addressLocality": "Austin", "addressRegion": "TX",
                    "postalCode": "78701"},
        "floorSize": {"value": "1,400"},
        "offers": {"price": "515000"},
        "image": ["https://img.example/a.jpg"],
    }
    page = f'<html><head><script type="application/ld+json">{json.dumps(ld)}</script></head><body></body></html>'
    parsed = await _parser(TruliaParser, {TRULIA_URL: page}).parse(TRULIA_URL)

    assert parsed.address.full == "7 Pine Ct, Austin, TX 78701"
    assert parsed.pricing.numeric_price == 515000
    assert parsed.details.sqft == 1400
    assert parsed.diagnostics  # no __NEXT_DATA__, recorded as degraded


async def test_flexmls_full_parse_from_page_markup():
    page = """
    <html><body>
      <div class="listing-price">$289,900</div>
      <div class="beds">3 Beds</div>
      <div class="baths">2 Baths</div>
      <div class="sqft">1,620 sq ft</div>
      <div class="photos">
        <img src="https://cdn.resize.sparkplatform.com/ky/1.jpg" alt="Front">
        <img src="https://cdn.resize.sparkplatform.com/ky/2.jpg">
        <img src="https://example.com/logo.png">
      </div>
      <p>MLS# 1650001</p>
      <p>Description: Charming brick home with a fenced yard and updated kitchen throughout.</p>
    </body></html>
    """
    parsed = await _parser(FlexmlsParser, {FLEX_URL: page}).parse(FLEX_URL)

    assert parsed.pricing.numeric_price == 289900
    assert parsed.details.beds == 3
    assert parsed.details.baths == 2
    assert parsed.details.sqft == 1620
    assert [i.url for i in parsed.images] == [
        "https://cdn.resize.sparkplatform.com/ky/1.jpg",
        "https://cdn.resize.sparkplatform.com/ky/2.jpg",
    ]
    assert parsed.listing.mls_number == "1650001"
    assert parsed.details.description.startswith("Charming brick home")
    assert parsed.address.full == "123 Main St, Louisville, KY 40202"


async def test_flexmls_media_json_wins_over_gallery_markup():
    media = {"combined": {"All": [
        {"html": '<img src="https://cdn.assets.flexmls.com/a.jpg" alt="Kitchen">'},
        {"html": '<img src="https://cdn.assets.flexmls.com/b.jpg">'},
    ]}}
    page = (
        f'<html><body><script id="tagged_listing_media" type="application/json">{json.dumps(media)}</script>'
        '<div class="gallery"><img src="https://cdn.resize.sparkplatform.com/x.jpg"></div>'
        '<span class="price">$100,000</span></body></html>'
    )
    parsed = await _parser(FlexmlsParser, {FLEX_URL: page}).parse(FLEX_URL)

    assert [i.url for i in parsed.images] == ["https://cdn.assets.flexmls.com/a.jpg", "https://cdn.assets.flexmls.com/b.jpg"]
    assert parsed.images[0].alt == "Kitchen"


async def test_empty_page_degrades_to_url_address(caplog):
    caplog.set_level(logging.WARNING)
    parsed = await _parser(ZillowParser, {ZILLOW_URL: "<html><body>nothing</body></html>"}).parse(ZILLOW_URL)

    assert parsed.is_degraded
    assert parsed.address.full == "123 Main St, Louisville, KY 40202"
    assert parsed.images == ()
    assert "degraded extraction" in caplog.text


def _zillow_payload_page(prop: dict) -> str:
    cache = {'ForSaleShopperPlatformFullRenderQuery{"zpid":12345}': {"property": prop}}
    return next_data_page({"props": {"pageProps": {"gdpClientCache": json.dumps(cache)}}})


async def test_zillow_tolerates_oddly_shaped_property_fields():
    page = _zillow_payload_page({
        "zpid": 12345,
        "address": "123 Main St",
        "attributionInfo": ["Pat Agent"],
        "price": 350000,
        "responsivePhotos": [{"mixedSources": ["not", "a", "dict"], "url": "https://photos.example/0.jpg"}, "x"],
    })
    parsed = await _parser(ZillowParser, {ZILLOW_URL: page}).parse(ZILLOW_URL)

    assert parsed.address.full == "123 Main St, Louisville, KY 40202"
    assert parsed.pricing.numeric_price == 350000
    assert [i.url for i in parsed.images] == ["https://photos.example/0.jpg"]
    assert parsed.listing.agent_name is None


async def test_crashing_extraction_degrades_instead_of_raising(monkeypatch, caplog):
    caplog.set_level(logging.WARNING)

    def explode(self, html, url, *, full):
        raise KeyError("homeInfo")

    monkeypatch.setattr(ZillowParser, "extract", explode)
    parser = _parser(ZillowParser, {ZILLOW_URL: zillow_page()})

    for parsed in (await parser.quick_parse(ZILLOW_URL), await parser.parse(ZILLOW_URL)):
        assert parsed.is_degraded
        assert "unexpected page structure (KeyError" in parsed.diagnostics[0]
        assert parsed.address.full == "123 Main St, Louisville, KY 40202"
        assert parsed.pricing.numeric_price is None
    assert "extraction crashed" in caplog.text


@pytest.mark.parametrize(
    "status, exc",
    [(403, BlockedError), (429, BlockedError), (404, PermanentParseError), (503, TransientNetworkError)],
)
async def test_http_status_maps_to_error(status, exc):
    parser = _parser(ZillowParser, {ZILLOW_URL: (status, "")})
    with pytest.raises(exc):
        await parser.parse(ZILLOW_URL)


async def test_parse_rejects_foreign_url():
    parser = _parser(ZillowParser, {})
    with pytest.raises(ValidationError):
        await parser.parse(REALTOR_URL)
    assert parser.renderer.calls == []


async def test_full_parse_uses_stealth_profile_and_quick_does_not():
    renderer = FakeRenderer({ZILLOW_URL: zillow_page()})
    parser = ZillowParser(renderer, min_request_delay_s=0, pre_nav_delay_s=(0.0, 0.0))

    await parser.quick_parse(ZILLOW_URL)
    await parser.parse(ZILLOW_URL)

    quick_profile, full_profile = renderer.calls[0][1], renderer.calls[1][1]
    assert quick_profile.simulate_scroll is False
    assert full_profile.simulate_scroll is True
    assert full_profile.viewport_width >= 1920
