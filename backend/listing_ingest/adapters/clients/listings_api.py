# listing_ingest/adapters/clients/listings_api.py
from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

import httpx

from ...config import settings
from ...domain.address import merge_address
from ...domain.errors import (
    CircuitOpenError,
    ExternalApiError,
    NotFoundError,
    ResponseValidationError,
    TransientNetworkError,
    ValidationError,
)
from ...domain.types import Address, ListingSource, ParsedProperty
from ..parsers.extraction import from_realtor_home
from .http_resilience import CircuitBreaker, RetryPolicy
from .inflight import InFlightRequests
from .quota import QuotaManager

log = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 502, 503, 504)

_ZIP = re.compile(r"\b(\d{5})\b")
_ZIP_TAIL = re.compile(r"\s*\d{5}(?:-\d{4})?$")
_STATE_TAIL = re.compile(r"^([A-Za-z]{2})(?:\s+\d{5}(?:-\d{4})?)?$")
_CITY_STATE = re.compile(r"^(.+?)\s+([A-Za-z]{2})(?:\s+\d{5}(?:-\d{4})?)?$")

# Used when the caller gives a bare city name.
CITY_STATES: dict[str, str] = {
    "louisville": "KY",
    "lexington": "KY",
    "new york": "NY",
    "los angeles": "CA",
    "chicago": "IL",
    "houston": "TX",
    "phoenix": "AZ",
    "philadelphia": "PA",
    "san antonio": "TX",
    "san diego": "CA",
    "dallas": "TX",
    "san jose": "CA",
    "austin": "TX",
    "jacksonville": "FL",
    "miami": "FL",
}


@dataclass(frozen=True)
class Suggestion:
    text: str
    type: str = "address"


@dataclass(frozen=True)
class Location:
    city: str
    state_code: str


def parse_location(text: str) -> Location:
    """
    "123 Main St, Louisville, KY 40202" / "Louisville, KY" / "Louisville KY" / "Louisville".
    Only the last comma part is searched for a state code so street
    suffixes ("Dr", "St") are not mistaken for one.
    """
    parts = [p.strip() for p in (text or "").split(",") if p.strip()]
    if not parts:
        raise ValidationError('Invalid location. Expected "City, ST" or "City"')

    city: str | None = None
    state: str | None = None
    if len(parts) >= 2:
        m = _STATE_TAIL.match(parts[-1])
        if m:
            city, state = parts[-2], m.group(1).upper()
    else:
        m = _CITY_STATE.match(parts[0])
        if m:
            city, state = m.group(1), m.group(2).upper()

    if state is None:
        city = _ZIP_TAIL.sub("", parts[-1]).strip()
        state = CITY_STATES.get(city.lower())
        if state is None:
            raise ValidationError(f'State code not found in "{text}". Include the state, e.g. "Louisville, KY"')
        log.info("Inferred state %s from city %s", state, city)

    city = (city or "").strip()
    if len(city) < 2:
        raise ValidationError(f'Could not extract a city name from "{text}"')
    return Location(city=city, state_code=state)


# -----------------------------
# Response validation
# -----------------------------
def validate_search_body(body: Any) -> list[dict[str, Any]]:
    if not isinstance(body, dict):
        raise ResponseValidationError("Empty or non-object search response", invalid_fields=["body"])
    data = body.get("data")
    if not isinstance(data, dict) or not data.get("home_search"):
        # No home_search means no results, not a broken response.
        return []
    results = data["home_search"].get("results") if isinstance(data["home_search"], dict) else None
    if not isinstance(results, list):
        raise ResponseValidationError(
            "Invalid search response structure: data.home_search.results (not an array)",
            invalid_fields=["data.home_search.results"],
        )
    return [r for r in results if isinstance(r, dict)]


def validate_detail_body(body: Any, property_id: str) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise ResponseValidationError("Empty or non-object detail response", invalid_fields=["body"])
    home = body.get("data")
    if home is None:
        raise NotFoundError(f"Listing {property_id} not found")
    if not isinstance(home, dict):
        raise ResponseValidationError("Invalid property detail response: data", invalid_fields=["data"])

    invalid: list[str] = []
    loc = home.get("location")
    if not isinstance(loc, dict) or not loc.get("address"):
        invalid.append("location.address")
    if not home.get("description") and not home.get("list_price"):
        invalid.append("description or list_price")
    if invalid:
        raise ResponseValidationError(f"Invalid property detail response: {', '.join(invalid)}", invalid_fields=invalid)
    return home


def to_parsed_property(home: dict[str, Any], property_id: str | None = None) -> ParsedProperty:
    pid = str(property_id or home.get("property_id") or home.get("listing_id") or "")
    ex = from_realtor_home(home)
    url = str(home.get("href") or home.get("permalink") or f"external:{pid}")
    return ParsedProperty(
        source_id=pid,
        source=ListingSource.external_api,
        address=merge_address(Address(), ex.address, url=url),
        source_url=url,
        pricing=ex.pricing,
        images=tuple(ex.images),
        details=ex.details,
        listing=ex.listing,
        raw_extra=ex.raw_extra,
        extracted_at=datetime.utcnow(),
    )


def _raise_for_status(r: httpx.Response, what: str) -> None:
    code = r.status_code
    if code < 400:
        return
    if code in RETRYABLE_STATUS:
        hint = "rate limit exceeded" if code == 429 else "service temporarily unavailable"
        raise TransientNetworkError(f"{what}: HTTP {code} ({hint})", status_code=code)
    if code == 404:
        raise NotFoundError(f"{what}: not found")

    try:
        payload: Any = r.json()
    except ValueError:
        payload = r.text[:500]
    if code == 401:
        raise ExternalApiError(f"{what}: authentication failed, check RAPIDAPI_KEY", status_code=code, payload=payload)
    if code == 403:
        raise ExternalApiError(f"{what}: forbidden, check the API subscription", status_code=code, payload=payload)
    raise ExternalApiError(f"{what}: HTTP {code}", status_code=code, payload=payload)


class ExternalListingsClient:
    """
    Structured listings API (RapidAPI "US Real Estate").

    Call path, inside out: HTTP -> validation -> retry -> circuit breaker
    -> monthly quota -> in-flight dedup.
    """

    SEARCH_PATH = "/properties/v3/list"
    DETAIL_PATH = "/properties/v3/detail"
    SUGGEST_PATH = "/keywords-search-suggest"

    SEARCH_ENDPOINT = "/v3/for-sale"
    DETAIL_ENDPOINT = "/v3/property-detail"
    SUGGEST_ENDPOINT = "/keywords-search-suggest"

    def __init__(
        self,
        *,
        quota: QuotaManager,
        api_key: str | None = None,
        host: str | None = None,
        base_url: str | None = None,
        timeout_s: float | None = None,
        breaker: CircuitBreaker | None = None,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        serve_stale: bool = True,
        stale_size: int = 256,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.RAPIDAPI_KEY
        self.host = host or settings.RAPIDAPI_HOST
        self.base_url = (base_url or settings.RAPIDAPI_BASE_URL or f"https://{self.host}").rstrip("/")
        self.timeout_s = float(timeout_s or settings.RAPIDAPI_TIMEOUT_S)
        self.quota = quota
        self.breaker = breaker or CircuitBreaker(name="listings_api")
        self.retry = retry or RetryPolicy()
        self._transport = transport
        self._inflight: InFlightRequests[Any] = InFlightRequests()
        self.serve_stale = serve_stale
        self._stale: OrderedDict[str, Any] = OrderedDict()
        self._stale_size = stale_size

        if not self._api_key:
            log.warning("RAPIDAPI_KEY not set; external listings API disabled")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "X-RapidAPI-Key": self._api_key or "",
            "X-RapidAPI-Host": self.host,
        }

    # ----- transport -----

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> Any:
        """Exactly one HTTP attempt. Maps failures onto the error taxonomy."""
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s), transport=self._transport) as client:
                r = await client.request(method, url, headers=self._headers(), params=params, json=json)
        except httpx.TimeoutException as e:
            raise TransientNetworkError(f"{path}: request timeout") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"{path}: unable to reach listings API ({type(e).__name__})") from e

        _raise_for_status(r, path)
        try:
            return r.json()
        except ValueError as e:
            raise ResponseValidationError(f"{path}: response is not JSON", invalid_fields=["body"]) from e

    # ----- resilience pipeline -----

    async def _call(self, key: str, endpoint: str, send: Callable[[], Awaitable[Any]]) -> Any:
        if not self.is_configured:
            raise ExternalApiError("Listings API is not configured (RAPIDAPI_KEY missing)")
        return await self._inflight.run(key, lambda: self._guarded(key, endpoint, send))

    async def _guarded(self, key: str, endpoint: str, send: Callable[[], Awaitable[Any]]) -> Any:
        await self.quota.acquire(endpoint)

        async def fallback(exc: BaseException) -> Any:
            # an open circuit refused the call before anything went out
            await self.quota.release(endpoint, sent=not isinstance(exc, CircuitOpenError))
            if self.serve_stale and key in self._stale:
                log.warning("Serving stale result for %s (%s)", key, exc)
                return self._stale[key]
            raise exc

        try:
            result = await self.breaker.call(lambda: self.retry.run(send, label=endpoint), fallback=fallback)
        except NotFoundError:
            await self.quota.release(endpoint)
            raise

        self._remember(key, result)
        return result

    def _remember(self, key: str, value: Any) -> None:
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._stale_size:
            self._stale.popitem(last=False)

    # ----- operations -----

    async def search_by_location(self, city_or_zip: str, state_code: str, limit: int = 20) -> list[ParsedProperty]:
        city_or_zip = (city_or_zip or "").strip()
        state_code = (state_code or "").strip().upper()
        if not city_or_zip:
            raise ValidationError("city or zip is required")
        if not 1 <= int(limit) <= 200:
            raise ValidationError("limit must be between 1 and 200")

        payload: dict[str, Any] = {
            "limit": int(limit),
            "offset": 0,
            "status": ["for_sale", "ready_to_build"],
            "sort": {"direction": "desc", "field": "list_date"},
        }
        zip_match = _ZIP.search(city_or_zip)
        if zip_match:
            payload["postal_code"] = zip_match.group(1)
        else:
            if not state_code:
                raise ValidationError("state_code is required when searching by city")
            payload["city"] = city_or_zip
            payload["state_code"] = state_code

        async def send() -> list[ParsedProperty]:
            body = await self._request("POST", self.SEARCH_PATH, json=payload)
            rows = validate_search_body(body)
            if not rows:
                log.info("No listings found for %s, %s", city_or_zip, state_code)
            return [to_parsed_property(r) for r in rows]

        key = f"search:{city_or_zip.lower()}:{state_code}:{int(limit)}"
        return await self._call(key, self.SEARCH_ENDPOINT, send)

    async def get_by_id(self, property_id: str) -> ParsedProperty:
        property_id = str(property_id or "").strip()
        if not property_id:
            raise ValidationError("property_id is required")

        async def send() -> ParsedProperty:
            body = await self._request("GET", self.DETAIL_PATH, params={"property_id": property_id})
            return to_parsed_property(validate_detail_body(body, property_id), property_id)

        return await self._call(f"property:{property_id}", self.DETAIL_ENDPOINT, send)

    async def autocomplete(self, query: str) -> list[Suggestion]:
        query = (query or "").strip()
        if len(query) < 3:
            return []

        async def send() -> list[Suggestion]:
            body = await self._request("GET", self.SUGGEST_PATH, params={"query": query})
            items = body.get("data") if isinstance(body, dict) else None
            if items is None:
                return []
            if not isinstance(items, list):
                raise ResponseValidationError("autocomplete: data is not a list", invalid_fields=["data"])
            out: list[Suggestion] = []
            for item in items:
                if isinstance(item, str):
                    out.append(Suggestion(text=item))
                elif isinstance(item, dict) and (text := item.get("text") or item.get("label")):
                    out.append(Suggestion(text=str(text), type=str(item.get("type") or item.get("area_type") or "address")))
            return out

        return await self._call(f"suggest:{query.lower()}", self.SUGGEST_ENDPOINT, send)

    async def health_status(self) -> dict[str, Any]:
        return {
            "configured": self.is_configured,
            "host": self.host,
            "circuit_breaker": self.breaker.stats(),
            "quota": await self.quota.usage_stats(),
            "in_flight": self._inflight.stats(),
        }

    def reset_circuit_breaker(self) -> None:
        self.breaker.reset()
