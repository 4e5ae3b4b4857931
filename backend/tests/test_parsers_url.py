import pytest

from conftest import FakeRenderer
from listing_ingest.adapters.parsers.flexmls import FlexmlsParser
from listing_ingest.adapters.parsers.realtor import RealtorParser
from listing_ingest.adapters.parsers.trulia import TruliaParser
from listing_ingest.adapters.parsers.zillow import ZillowParser
from listing_ingest.domain.errors import ValidationError


@pytest.fixture
def fake():
    return FakeRenderer()


def _parser(cls, renderer):
    return cls(renderer, min_request_delay_s=0, pre_nav_delay_s=(0.0, 0.0))


def test_zillow_url_address(fake):
    p = _parser(ZillowParser, fake)
    out = p.extract_address_from_url("https://www.zillow.com/homedetails/123-Main-St-Louisville-KY-40202/12345_zpid/")
    assert out.source_id == "12345"
    assert out.address.street == "123 Main St"
    assert out.address.city == "Louisville"
    assert out.address.state == "KY"
    assert out.address.zip == "40202"
    assert out.address.full == "123 Main St, Louisville, KY 40202"


def test_realtor_url_address(fake):
    p = _parser(RealtorParser, fake)
    out = p.extract_address_from_url(
        "https://www.realtor.com/realestateandhomes-detail/123-Main-St_Louisville_KY_40202_M12345-67890"
    )
    assert out.source_id == "M12345-67890"
    assert out.address.full == "123 Main St, Louisville, KY 40202"


def test_trulia_home_url_address(fake):
    p = _parser(TruliaParser, fake)
    out = p.extract_address_from_url("https://www.trulia.com/home/123-main-st-louisville-ky-40202-12345678")
    assert out.source_id == "12345678"
    assert out.address.street == "123 Main St"
    assert out.address.city == "Louisville"
    assert out.address.state == "KY"


def test_trulia_p_url_address(fake):
    p = _parser(TruliaParser, fake)
    out = p.extract_address_from_url(
        "https://www.trulia.com/p/ky/louisville/123-main-st-louisville-ky-40202--2000000000"
    )
    assert out.source_id == "2000000000"
    assert out.address.full == "123 Main St, Louisville, KY 40202"


def test_flexmls_url_address(fake):
    p = _parser(FlexmlsParser, fake)
    out = p.extract_address_from_url("https://www.flexmls.com/share/ABC123/123-Main-St-Louisville-KY-40202")
    assert out.source_id == "ABC123"
    assert out.address.full == "123 Main St, Louisville, KY 40202"


def test_flexmls_repeated_city_is_collapsed(fake):
    p = _parser(FlexmlsParser, fake)
    out = p.extract_address_from_url(
        "https://www.flexmls.com/share/XYZ/9-Elm-Ave-Louisville-Louisville-KY-40205"
    )
    assert out.address.full.count("Louisville") == 1


@pytest.mark.parametrize(
    "cls, url",
    [
        (ZillowParser, "https://www.zillow.com/homedetails/12345_zpid/"),
        (RealtorParser, "https://www.realtor.com/realestateandhomes-detail/just-a-slug"),
        (TruliaParser, "https://www.trulia.com/home/short"),
        (FlexmlsParser, "https://www.flexmls.com/share/ABC"),
    ],
)
def test_undecodable_url_raises_validation_error(fake, cls, url):
    with pytest.raises(ValidationError):
        _parser(cls, fake).extract_address_from_url(url)


def test_url_decoding_is_pure(fake):
    p = _parser(ZillowParser, fake)
    url = "https://www.zillow.com/homedetails/123-Main-St-Louisville-KY-40202/12345_zpid/"
    assert p.extract_address_from_url(url) == p.extract_address_from_url(url)
    assert fake.calls == []


@pytest.mark.parametrize(
    "cls, url, score",
    [
        (ZillowParser, "https://www.zillow.com/homedetails/a-b-c-d/1_zpid/", 1.0),
        (ZillowParser, "https://www.zillow.com/homedetails/a-b-c-d/", 0.6),
        (RealtorParser, "https://www.realtor.com/realestateandhomes-detail/a_b_c_d", 0.95),
        (RealtorParser, "https://www.realtor.com/realestateandhomes-search/Louisville_KY", 0.5),
        (TruliaParser, "https://www.trulia.com/home/a-b-c-d-e", 0.95),
        (FlexmlsParser, "https://www.flexmls.com/share/A/b-c-d-e", 1.0),
        (ZillowParser, "https://www.realtor.com/realestateandhomes-detail/a_b_c_d", 0.0),
    ],
)
def test_confidence(fake, cls, url, score):
    assert _parser(cls, fake).confidence(url) == pytest.approx(score)
