#!/usr/bin/env python3
"""
Refresh market quotes for every asset and catalog ticker, for all users.

Meant to run once per trading day from cron. Writes asset quotes, catalog
quotes and, for held assets, one valuation snapshot per (asset, date).
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date

# Ensure repo root on sys.path before importing app.*
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app.infra.db import SessionLocal  # noqa: E402
from app.infra.logging import setup_logging  # noqa: E402
from app.infra.settings import settings  # noqa: E402
from app.services.market_data import build_quote_fetcher  # noqa: E402
from app.services.quote_sync import update_market_quotes  # noqa: E402
from app.services.store import RecordStore, StoreError  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Update market quotes and valuations.")
    parser.add_argument(
        "--today",
        type=str,
        help="Fallback quote date (YYYY-MM-DD) when the provider sends no market time. Defaults to today.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.fii_quote_fetch_workers,
        help="Concurrent quote fetches (default from FII_QUOTE_FETCH_WORKERS).",
    )
    args = parser.parse_args()

    setup_logging(settings.fii_log_level)
    today = date.fromisoformat(args.today) if args.today else date.today()

    fetcher = build_quote_fetcher()
    try:
        with SessionLocal() as db:
            summary = update_market_quotes(
                RecordStore(db),
                fetcher,
                today=today,
                max_workers=args.workers,
            )
    except StoreError as e:
        print(f"[quotes] failed: {e}", file=sys.stderr)
        return 1
    finally:
        fetcher.close()

    print(json.dumps(summary.as_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
