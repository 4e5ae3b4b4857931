import asyncio
import json
from datetime import datetime

import httpx
import pytest

from listing_ingest.adapters.clients.http_resilience import CircuitBreaker, CircuitState, RetryPolicy
from listing_ingest.adapters.clients.listings_api import ExternalListingsClient, Suggestion, parse_location
from listing_ingest.adapters.clients.quota import MemoryQuotaStore, QuotaManager
from listing_ingest.domain.errors import (
    CircuitOpenError,
    ExternalApiError,
    NotFoundError,
    QuotaExceededError,
    ResponseValidationError,
    TransientNetworkError,
    ValidationError,
)
from listing_ingest.domain.types import ListingSource

HOME = {
    "property_id": "M999",
    "href": "https://www.realtor.com/realestateandhomes-detail/55-Oak-Dr_Lexington_KY_40502_M999",
    "list_price": 425000,
    "status": "for_sale",
    "location": {"address": {"line": "55 Oak Dr", "city": "Lexington", "state_code": "KY", "postal_code": "40502"}},
    "description": {"beds": 4, "baths": 2.5, "sqft": 2000, "text": "Updated kitchen."},
    "photos": [{"href": "https://ap.rdcpix.com/1.jpg"}],
}


class Recorder:
    """MockTransport handler that answers from a queue and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, json=body)

    def json_body(self, i=0):
        return json.loads(self.requests[i].content)


class Sleeper:
    def __init__(self):
        self.delays = []

    async def __call__(self, s):
        self.delays.append(s)


def _quota(limit=500, **kw):
    return QuotaManager(MemoryQuotaStore(), limit=limit, clock=lambda: datetime(2024, 4, 10), **kw)


def _client(handler, *, quota=None, api_key="test-key", sleeper=None, **kw):
    return ExternalListingsClient(
        quota=quota or _quota(),
        api_key=api_key,
        host="us-real-estate.p.rapidapi.com",
        transport=httpx.MockTransport(handler),
        breaker=CircuitBreaker(name="test", failure_threshold=5, success_threshold=2, timeout_s=60),
        retry=RetryPolicy(max_attempts=3, base_delay_s=1.0, sleep=sleeper or Sleeper(), rng=lambda: 0.0),
        **kw,
    )


# ----- location parsing -----

@pytest.mark.parametrize(
    "text, city, state",
    [
        ("123 Main St, Louisville, KY 40202", "Louisville", "KY"),
        ("Louisville, KY", "Louisville", "KY"),
        ("Louisville KY", "Louisville", "KY"),
        ("New York NY 10001", "New York", "NY"),
        ("Austin 78701", "Austin", "TX"),
        ("Miami", "Miami", "FL"),
    ],
)
def test_parse_location(text, city, state):
    loc = parse_location(text)
    assert (loc.city, loc.state_code) == (city, state)


@pytest.mark.parametrize("text", ["", "Springfield", ", KY"])
def test_parse_location_rejects_unknown_or_empty(text):
    with pytest.raises(ValidationError):
        parse_location(text)


# ----- search -----

async def test_search_by_city_sends_city_and_state():
    rec = Recorder((200, {"data": {"home_search": {"results": [HOME]}}}))
    client = _client(rec)

    results = await client.search_by_location("Lexington", "ky", limit=5)

    assert len(results) == 1
    assert results[0].source == ListingSource.external_api
    assert results[0].address.full == "55 Oak Dr, Lexington, KY 40502"
    assert results[0].pricing.numeric_price == 425000

    req = rec.requests[0]
    assert req.method == "POST"
    assert req.url.path == "/properties/v3/list"
    assert req.headers["X-RapidAPI-Key"] == "test-key"
    assert req.headers["X-RapidAPI-Host"] == "us-real-estate.p.rapidapi.com"
    body = rec.json_body()
    assert body["city"] == "Lexington"
    assert body["state_code"] == "KY"
    assert body["limit"] == 5
    assert "postal_code" not in body


async def test_search_by_zip_uses_postal_code():
    rec = Recorder((200, {"data": {"home_search": {"results": []}}}))
    await _client(rec).search_by_location("40202", "")

    body = rec.json_body()
    assert body["postal_code"] == "40202"
    assert "city" not in body


async def test_search_input_validation_makes_no_call():
    rec = Recorder((200, {}))
    client = _client(rec)
    with pytest.raises(ValidationError):
        await client.search_by_location("Louisville", "")
    with pytest.raises(ValidationError):
        await client.search_by_location("Louisville", "KY", limit=0)
    assert rec.requests == []


async def test_missing_home_search_means_no_results():
    rec = Recorder((200, {"data": {"home_search": None}}))
    assert await _client(rec).search_by_location("Louisville", "KY") == []


async def test_non_list_results_is_a_validation_failure():
    rec = Recorder((200, {"data": {"home_search": {"results": "oops"}}}))
    with pytest.raises(ResponseValidationError) as exc:
        await _client(rec).search_by_location("Louisville", "KY")
    assert exc.value.invalid_fields == ["data.home_search.results"]


# ----- detail -----

async def test_get_by_id_returns_parsed_property():
    rec = Recorder((200, {"data": HOME}))
    parsed = await _client(rec).get_by_id("M999")

    assert rec.requests[0].url.params["property_id"] == "M999"
    assert parsed.source_id == "M999"
    assert parsed.source_url == HOME["href"]
    assert parsed.details.beds == 4
    assert [i.url for i in parsed.images] == ["https://ap.rdcpix.com/1.jpg"]


async def test_get_by_id_null_data_is_not_found():
    rec = Recorder((200, {"data": None}))
    with pytest.raises(NotFoundError):
        await _client(rec).get_by_id("M404")


async def test_get_by_id_missing_required_fields():
    rec = Recorder((200, {"data": {"location": {}}}))
    with pytest.raises(ResponseValidationError) as exc:
        await _client(rec).get_by_id("M1")
    assert exc.value.invalid_fields == ["location.address", "description or list_price"]


# ----- autocomplete -----

async def test_autocomplete_short_query_skips_the_api():
    rec = Recorder((200, {"data": []}))
    client = _client(rec)
    assert await client.autocomplete("lo") == []
    assert rec.requests == []
    assert (await client.quota.usage_stats())["total"] == 0


async def test_autocomplete_normalizes_items():
    rec = Recorder((200, {"data": [
        "Louisville, KY",
        {"text": "Louisville Metro", "area_type": "county"},
        {"nothing": "useful"},
    ]}))
    out = await _client(rec).autocomplete("Louis")
    assert out == [Suggestion("Louisville, KY"), Suggestion("Louisville Metro", "county")]


# ----- error mapping and resilience -----

async def test_auth_failure_is_not_retried():
    rec = Recorder((401, {"message": "bad key"}))
    with pytest.raises(ExternalApiError) as exc:
        await _client(rec).get_by_id("M1")
    assert exc.value.status_code == 401
    assert len(rec.requests) == 1


async def test_http_404_is_not_found_and_does_not_trip_breaker():
    rec = Recorder((404, {}))
    client = _client(rec)
    for _ in range(6):
        with pytest.raises(NotFoundError):
            await client.get_by_id("gone")
    assert client.breaker.state is CircuitState.closed


async def test_not_found_refunds_quota_when_failed_calls_are_free():
    rec = Recorder((404, {}))
    client = _client(rec, quota=_quota(count_failed_calls=False))
    with pytest.raises(NotFoundError):
        await client.get_by_id("gone")
    assert (await client.quota.usage_stats())["total"] == 0


async def test_503_is_retried_then_surfaces_as_transient():
    rec = Recorder((503, {}))
    sleeper = Sleeper()
    with pytest.raises(TransientNetworkError):
        await _client(rec, sleeper=sleeper).get_by_id("M1")
    assert len(rec.requests) == 3
    assert sleeper.delays == [1.0, 2.0]


async def test_breaker_opens_and_then_fails_fast():
    rec = Recorder((502, {}))
    client = _client(rec)
    for _ in range(5):
        with pytest.raises(TransientNetworkError):
            await client.get_by_id("M1")
    assert client.breaker.state is CircuitState.open
    sent = len(rec.requests)

    with pytest.raises(CircuitOpenError):
        await client.get_by_id("M1")
    assert len(rec.requests) == sent

    client.reset_circuit_breaker()
    assert client.breaker.state is CircuitState.closed


async def test_open_circuit_fast_fails_do_not_spend_quota():
    rec = Recorder((502, {}))
    client = _client(rec)
    client.breaker = CircuitBreaker(name="test", failure_threshold=1, timeout_s=60)
    with pytest.raises(TransientNetworkError):
        await client.get_by_id("M1")
    assert (await client.quota.usage_stats())["total"] == 1

    for _ in range(10):
        with pytest.raises(CircuitOpenError):
            await client.get_by_id("M1")

    assert (await client.quota.usage_stats())["total"] == 1


async def test_quota_exhausted_makes_no_http_call():
    rec = Recorder((200, {"data": HOME}))
    client = _client(rec, quota=_quota(limit=0))
    with pytest.raises(QuotaExceededError):
        await client.get_by_id("M999")
    assert rec.requests == []


async def test_unconfigured_client_refuses():
    rec = Recorder((200, {"data": HOME}))
    client = _client(rec, api_key="")
    assert client.is_configured is False
    with pytest.raises(ExternalApiError):
        await client.get_by_id("M999")
    assert rec.requests == []


async def test_stale_result_served_when_upstream_fails():
    rec = Recorder((200, {"data": HOME}), (503, {}))
    client = _client(rec)

    fresh = await client.get_by_id("M999")
    stale = await client.get_by_id("M999")

    assert stale == fresh
    assert len(rec.requests) == 4


async def test_stale_fallback_can_be_disabled():
    rec = Recorder((200, {"data": HOME}), (503, {}))
    client = _client(rec, serve_stale=False)
    await client.get_by_id("M999")
    with pytest.raises(TransientNetworkError):
        await client.get_by_id("M999")


async def test_concurrent_identical_calls_share_one_request():
    gate = asyncio.Event()
    requests = []

    async def handler(request):
        requests.append(request)
        await gate.wait()
        return httpx.Response(200, json={"data": HOME})

    client = _client(handler)
    calls = [asyncio.ensure_future(client.get_by_id("M999")) for _ in range(4)]
    await asyncio.sleep(0.01)
    assert (await client.health_status())["in_flight"]["in_flight"] == 1
    gate.set()
    results = await asyncio.gather(*calls)

    assert len(requests) == 1
    assert all(r.source_id == "M999" for r in results)
    assert (await client.quota.usage_stats())["total"] == 1


async def test_health_status_reports_all_layers():
    client = _client(Recorder((200, {})))
    health = await client.health_status()
    assert health["configured"] is True
    assert health["circuit_breaker"]["state"] == "CLOSED"
    assert health["quota"]["limit"] == 500
    assert health["in_flight"] == {"in_flight": 0, "keys": []}
