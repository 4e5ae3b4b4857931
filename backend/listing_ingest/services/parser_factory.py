# listing_ingest/services/parser_factory.py
from __future__ import annotations

import logging
from typing import Any

from ..adapters.browser.base import PageRenderer
from ..adapters.parsers.base import ListingParser
from ..adapters.parsers.flexmls import FlexmlsParser
from ..adapters.parsers.realtor import RealtorParser
from ..adapters.parsers.trulia import TruliaParser
from ..adapters.parsers.zillow import ZillowParser
from ..domain.sites import detect_source
from ..domain.types import ListingSource

log = logging.getLogger(__name__)

_UNREGISTRABLE = (ListingSource.unknown, ListingSource.external_api)


class ParserFactory:
    """
    Registry of one parser per listing source.

    Several parsers may claim a URL; the highest confidence wins. Ties go to
    the parser registered for the detected source, then to registration order.
    """

    def __init__(self) -> None:
        self._parsers: dict[ListingSource, ListingParser] = {}

    def register(self, parser: ListingParser) -> None:
        if parser.source in _UNREGISTRABLE:
            raise ValueError(f"cannot register a parser for source={parser.source.value}")
        self._parsers[parser.source] = parser

    def get_parser(self, url: str) -> ListingParser | None:
        detected = detect_source(url)
        candidates: list[tuple[float, int, int, ListingParser]] = []
        for order, parser in enumerate(self._parsers.values()):
            if not parser.can_handle(url):
                continue
            score = parser.confidence(url)
            if score <= 0:
                continue
            home = 1 if parser.source == detected else 0
            candidates.append((score, home, -order, parser))

        if not candidates:
            log.info("No parser for %s (detected=%s)", url, detected.value)
            return None

        score, _, _, chosen = max(candidates, key=lambda c: c[:3])
        log.info("Using %s parser for %s (confidence %.2f)", chosen.name, url, score)
        return chosen

    def get_parser_by_source(self, source: ListingSource) -> ListingParser | None:
        return self._parsers.get(source)

    def can_parse(self, url: str) -> bool:
        return self.get_parser(url) is not None

    def registered_parser_names(self) -> list[str]:
        return [p.name for p in self._parsers.values()]

    def stats(self) -> dict[str, Any]:
        return {
            "total_parsers": len(self._parsers),
            "registered_sources": [s.value for s in self._parsers],
            "parser_names": self.registered_parser_names(),
        }


def build_default_factory(renderer: PageRenderer, **parser_kwargs: Any) -> ParserFactory:
    factory = ParserFactory()
    for cls in (FlexmlsParser, ZillowParser, RealtorParser, TruliaParser):
        factory.register(cls(renderer, **parser_kwargs))
    return factory
