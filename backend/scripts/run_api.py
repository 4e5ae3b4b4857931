# scripts/run_api.py
from __future__ import annotations

import argparse
import logging

import uvicorn

from listing_ingest.config import settings


def _quiet_logging() -> None:
    # Root defaults
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    ap = argparse.ArgumentParser(description="Run the listing ingest API")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    args = ap.parse_args()

    _quiet_logging()
    uvicorn.run("listing_ingest.main:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
