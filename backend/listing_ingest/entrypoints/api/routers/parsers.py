# listing_ingest/entrypoints/api/routers/parsers.py
from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends

from ..deps import get_parser_factory, require_api_key
from ....domain.errors import ValidationError
from ....domain.sites import detect_source, is_supported_site, is_valid_url, site_name
from ....schemas import DetectOut, DetectRequest
from ....services.parser_factory import ParserFactory

router = APIRouter(prefix="/parsers", tags=["parsers"], dependencies=[Depends(require_api_key)])


@router.get("")
def parser_stats(factory: ParserFactory = Depends(get_parser_factory)) -> dict[str, Any]:
    return factory.stats()


@router.post("/detect", response_model=DetectOut)
def detect(body: DetectRequest, factory: ParserFactory = Depends(get_parser_factory)) -> DetectOut:
    """Which parser would take this URL, and what the URL alone tells us. No network."""
    source = detect_source(body.url)
    out = DetectOut(
        url=body.url,
        valid=is_valid_url(body.url),
        source=source.value,
        site_name=site_name(source),
        supported=is_supported_site(body.url),
    )

    parser = factory.get_parser(body.url) if out.valid else None
    if parser is None:
        return out

    out.parser = parser.name
    out.confidence = parser.confidence(body.url)
    try:
        decoded = parser.extract_address_from_url(body.url)
    except ValidationError as e:
        out.address_error = str(e)
    else:
        out.source_id = decoded.source_id
        out.address = asdict(decoded.address)
    return out
