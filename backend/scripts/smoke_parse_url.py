# scripts/smoke_parse_url.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging

from listing_ingest.adapters.browser.factory import build_renderer
from listing_ingest.domain.errors import ListingIngestError, ValidationError
from listing_ingest.domain.sites import detect_source, site_name
from listing_ingest.services.parser_factory import build_default_factory


async def main() -> None:
    ap = argparse.ArgumentParser(description="Detect, decode and optionally parse one listing URL")
    ap.add_argument("url")
    ap.add_argument("--live", action="store_true", help="fetch the page and run a full parse")
    ap.add_argument("--quick", action="store_true", help="with --live, run the quick pass only")
    ap.add_argument("--renderer", default=None, help="httpx | playwright (default: RENDERER setting)")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)

    source = detect_source(args.url)
    print(f"source: {source.value} ({site_name(source)})")

    renderer = build_renderer(args.renderer)
    factory = build_default_factory(renderer)
    parser = factory.get_parser(args.url)
    if parser is None:
        print("no parser for this URL")
        return
    print(f"parser: {parser.name} confidence={parser.confidence(args.url):.2f}")

    try:
        decoded = parser.extract_address_from_url(args.url)
        print(f"source_id: {decoded.source_id}")
        print(f"address:   {decoded.address.full}")
    except ValidationError as e:
        print(f"url address: {e}")

    if not args.live:
        return

    await renderer.start()
    try:
        parsed = await (parser.quick_parse(args.url) if args.quick else parser.parse(args.url))
    except ListingIngestError as e:
        print(f"parse failed: {type(e).__name__}: {e}")
        return
    finally:
        await renderer.close()
    print(json.dumps(parsed.to_dict(), indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
