# scripts/init_db.py
from __future__ import annotations

import argparse
import asyncio

from listing_ingest.config import settings
from listing_ingest.db import build_engine
from listing_ingest.models import Base


async def main() -> None:
    ap = argparse.ArgumentParser(description="Create the listing ingest tables")
    ap.add_argument("--db-url", default=settings.INGEST_DB_URL)
    args = ap.parse_args()

    engine = build_engine(args.db_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()
    print(f"OK: {', '.join(sorted(Base.metadata.tables))} on {args.db_url} (idempotent).")


if __name__ == "__main__":
    asyncio.run(main())
