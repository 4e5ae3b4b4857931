import pytest

from listing_ingest.domain.address import normalize_address, placeholder_address, price_range
from listing_ingest.domain.sites import detect_source, is_supported_site, is_valid_url, site_name
from listing_ingest.domain.types import ListingSource


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.flexmls.com/share/ABC123/123-Main-St-Louisville-KY-40202", ListingSource.flexmls),
        ("https://www.zillow.com/homedetails/123-Main-St-Louisville-KY-40202/12345_zpid/", ListingSource.zillow),
        ("https://zillow.com/homedetails/x/1_zpid", ListingSource.zillow),
        ("https://www.realtor.com/realestateandhomes-detail/123-Main-St_Louisville_KY_40202_M1", ListingSource.realtor),
        ("https://www.trulia.com/home/123-main-st-louisville-ky-40202-1234", ListingSource.trulia),
        ("https://www.trulia.com/p/ky/louisville/123-main-st-louisville-ky-40202--2000", ListingSource.trulia),
        ("https://www.redfin.com/KY/Louisville/123-Main-St/home/1", ListingSource.unknown),
        ("https://www.zillow.com/homes/for_sale/", ListingSource.unknown),
    ],
)
def test_detect_source(url, expected):
    assert detect_source(url) == expected


@pytest.mark.parametrize("bad", [None, 42, "", "   ", "not a url", "ftp://zillow.com/homedetails/x", "https://"])
def test_detect_source_never_raises_on_malformed_input(bad):
    assert is_valid_url(bad) is False
    assert detect_source(bad) == ListingSource.unknown
    assert is_supported_site(bad) is False


def test_site_name():
    assert site_name(ListingSource.realtor) == "Realtor.com"
    assert site_name(ListingSource.unknown) == "Unknown"


def test_normalize_address_strips_punctuation_and_case():
    assert normalize_address("123 Main St., Louisville,  KY 40205") == "123 main st louisville ky 40205"
    assert normalize_address(None) == ""


def test_placeholder_address_is_never_empty():
    a = placeholder_address("https://www.zillow.com/homedetails/")
    assert a.is_placeholder
    assert a.full.startswith("Listing at zillow.com")

    b = placeholder_address("garbage")
    assert b.full


@pytest.mark.parametrize(
    "price, bucket",
    [(None, None), (0, None), (150_000, "under_200k"), (200_000, "200k_300k"), (499_999, "300k_500k"),
     (600_000, "500k_750k"), (999_999, "750k_1m"), (1_000_000, "over_1m")],
)
def test_price_range(price, bucket):
    assert price_range(price) == bucket
