from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from app.infra.models import Asset, AssetCatalog, MarketCatalogQuote, MarketQuote, Valuation
from app.services.market_data import (
    QuoteFetcher,
    QuoteResult,
    resolve_price_to_book,
    resolve_quote_date,
)
from app.services.parsing import normalize_ticker
from app.services.store import CONFLICT_KEYS, RecordStore

log = logging.getLogger(__name__)


@dataclass
class QuoteSyncSummary:
    updated_assets: int = 0
    updated_catalog: int = 0
    updated_valuations: int = 0
    tickers: int = 0
    message: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "updatedAssets": self.updated_assets,
            "updatedCatalog": self.updated_catalog,
            "updatedValuations": self.updated_valuations,
            "tickers": self.tickers,
        }
        if self.message:
            out["message"] = self.message
        return out


def collect_tickers(assets: Iterable[Any], catalog: Iterable[Any]) -> List[str]:
    tickers: Set[str] = set()
    for row in list(assets) + list(catalog):
        t = normalize_ticker(row.ticker)
        if t:
            tickers.add(t)
    return sorted(tickers)


def _fetch_one(fetch_quote: QuoteFetcher, ticker: str) -> Optional[QuoteResult]:
    try:
        quote = fetch_quote(ticker)
    except Exception as e:
        log.warning("quote fetch failed for %s: %s", ticker, e)
        return None
    if quote is None or not quote.price:
        log.info("no usable quote for %s", ticker)
        return None
    return quote


def fetch_quotes(
    fetch_quote: QuoteFetcher,
    tickers: List[str],
    max_workers: int = 1,
) -> Dict[str, QuoteResult]:
    """
    One quote per ticker. Failures are isolated per ticker; with
    max_workers > 1 fetches run on a bounded thread pool.
    """
    if max_workers <= 1 or len(tickers) <= 1:
        results = [_fetch_one(fetch_quote, t) for t in tickers]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(lambda t: _fetch_one(fetch_quote, t), tickers))
    return {t: q for t, q in zip(tickers, results) if q is not None}


def _quote_row(quote: QuoteResult, quote_date: date) -> Dict[str, Any]:
    return {
        "date": quote_date,
        "price": quote.price,
        "change": quote.change,
        "change_percent": quote.change_percent,
        "volume": int(quote.volume) if quote.volume is not None else None,
        "week_52_high": quote.week_52_high,
        "week_52_low": quote.week_52_low,
        "source": quote.source,
    }


def build_quote_rows(
    assets: Iterable[Any],
    catalog: Iterable[Any],
    quotes: Dict[str, QuoteResult],
    today: date,
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], List[Dict[str, Any]]]:
    """(asset quote rows, catalog quote rows, valuation candidates)."""
    asset_rows: List[Dict[str, Any]] = []
    catalog_rows: List[Dict[str, Any]] = []
    valuations: List[Dict[str, Any]] = []

    for asset in assets:
        quote = quotes.get(normalize_ticker(asset.ticker) or "")
        if quote is None:
            continue
        quote_date = resolve_quote_date(quote.market_time, today)
        asset_rows.append({"user_id": asset.user_id, "asset_id": asset.id, **_quote_row(quote, quote_date)})
        valuations.append(
            {
                "user_id": asset.user_id,
                "asset_id": asset.id,
                "date": quote_date,
                "price": quote.price,
                "vp_per_share": quote.book_value_per_share,
                "p_vp": resolve_price_to_book(quote.price, quote.book_value_per_share, quote.price_to_book),
            }
        )

    for item in catalog:
        quote = quotes.get(normalize_ticker(item.ticker) or "")
        if quote is None:
            continue
        quote_date = resolve_quote_date(quote.market_time, today)
        catalog_rows.append({"user_id": item.user_id, "catalog_id": item.id, **_quote_row(quote, quote_date)})

    return asset_rows, catalog_rows, valuations


def filter_new_valuations(
    store: RecordStore,
    candidates: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Drop candidates whose (asset_id, date) already has a valuation, and
    duplicates inside the batch.

    Read-then-write: two concurrent runs could both insert. Acceptable for a
    single scheduled job.
    """
    existing = store.existing_valuation_keys((c["asset_id"], c["date"]) for c in candidates)
    seen = set(existing)
    fresh: List[Dict[str, Any]] = []
    for c in candidates:
        key = (str(c["asset_id"]), c["date"])
        if key in seen:
            continue
        seen.add(key)
        fresh.append(c)
    return fresh


def update_market_quotes(
    store: RecordStore,
    fetch_quote: QuoteFetcher,
    today: Optional[date] = None,
    max_workers: int = 1,
) -> QuoteSyncSummary:
    """
    Refresh quotes for every held asset and catalog entry (all users).

    Writes three independent batches in order: asset quotes, catalog quotes,
    new valuations. A StoreError in one batch stops the run; batches already
    committed stay.
    """
    today = today or date.today()
    assets = store.fetch_all(Asset)
    catalog = store.fetch_all(AssetCatalog)

    if not assets and not catalog:
        return QuoteSyncSummary(message="No assets found")

    tickers = collect_tickers(assets, catalog)
    log.info("updating quotes for %d tickers", len(tickers))
    quotes = fetch_quotes(fetch_quote, tickers, max_workers=max_workers)

    asset_rows, catalog_rows, candidates = build_quote_rows(assets, catalog, quotes, today)
    summary = QuoteSyncSummary(tickers=len(quotes))
    if not asset_rows and not catalog_rows:
        summary.message = "No quotes collected"
        return summary

    store.upsert_many(MarketQuote, asset_rows, CONFLICT_KEYS[MarketQuote])
    summary.updated_assets = len(asset_rows)

    store.upsert_many(MarketCatalogQuote, catalog_rows, CONFLICT_KEYS[MarketCatalogQuote])
    summary.updated_catalog = len(catalog_rows)

    new_valuations = filter_new_valuations(store, candidates)
    store.insert_many(Valuation, new_valuations)
    summary.updated_valuations = len(new_valuations)

    log.info(
        "quotes updated: assets=%d catalog=%d valuations=%d tickers=%d",
        summary.updated_assets,
        summary.updated_catalog,
        summary.updated_valuations,
        summary.tickers,
    )
    return summary
