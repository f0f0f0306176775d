from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pandas as pd
import yfinance as yf

from app.infra.settings import settings
from app.services.parsing import parse_optional_number

log = logging.getLogger(__name__)

QuoteFetcher = Callable[[str], Optional["QuoteResult"]]


@dataclass(frozen=True)
class QuoteResult:
    symbol: str
    price: Optional[float]
    change: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[float] = None
    market_time: Any = None  # ISO string or epoch seconds as reported
    week_52_high: Optional[float] = None
    week_52_low: Optional[float] = None
    book_value_per_share: Optional[float] = None
    price_to_book: Optional[float] = None
    source: str = "brapi"

    @classmethod
    def from_brapi(cls, payload: Dict[str, Any]) -> "QuoteResult":
        return cls(
            symbol=str(payload.get("symbol") or "").upper(),
            price=parse_optional_number(payload.get("regularMarketPrice")),
            change=parse_optional_number(payload.get("regularMarketChange")),
            change_percent=parse_optional_number(payload.get("regularMarketChangePercent")),
            volume=parse_optional_number(payload.get("regularMarketVolume")),
            market_time=payload.get("regularMarketTime"),
            week_52_high=parse_optional_number(payload.get("fiftyTwoWeekHigh")),
            week_52_low=parse_optional_number(payload.get("fiftyTwoWeekLow")),
            book_value_per_share=parse_optional_number(payload.get("bookValue")),
            price_to_book=parse_optional_number(payload.get("priceToBook")),
            source="brapi",
        )


def resolve_quote_date(market_time: Any, today: date) -> date:
    """
    Trade timestamp truncated to a UTC calendar date.
    Accepts ISO strings ("...Z" included), epoch seconds or datetimes; anything
    else falls back to `today`.
    """
    if market_time is None or isinstance(market_time, bool):
        return today
    try:
        if isinstance(market_time, datetime):
            dt = market_time
        elif isinstance(market_time, (int, float)):
            dt = datetime.fromtimestamp(float(market_time), tz=timezone.utc)
        elif isinstance(market_time, str) and market_time.strip():
            s = market_time.strip()
            if s.endswith("Z"):
                s = s[:-1] + "+00:00"
            dt = datetime.fromisoformat(s)
        else:
            return today
    except (ValueError, OverflowError, OSError):
        return today
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def resolve_price_to_book(
    price: Optional[float],
    book_value_per_share: Optional[float],
    price_to_book: Optional[float] = None,
) -> Optional[float]:
    """Explicit P/VP first, then price / book value when both are usable."""
    if price_to_book is not None:
        return price_to_book
    if price is not None and book_value_per_share:
        return price / book_value_per_share
    return None


class BrapiClient:
    """brapi.dev quote endpoint (B3 listed funds)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.brapi_base_url).rstrip("/")
        self.token = token if token is not None else settings.brapi_token
        self._client = httpx.Client(
            timeout=timeout or settings.fii_quote_timeout_seconds,
            transport=transport,
            headers={"User-Agent": "fii-tracker/1.0", "Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def fetch_quote(self, ticker: str) -> Optional[QuoteResult]:
        """
        One quote for `ticker`, or None when brapi has no usable result.
        Transport errors propagate so the caller can log and skip the ticker.
        """
        params: Dict[str, Any] = {}
        if self.token:
            params["token"] = self.token
        resp = self._client.get(f"{self.base_url}/{ticker}", params=params)
        if resp.status_code >= 400:
            log.warning("brapi quote failed for %s: HTTP %s", ticker, resp.status_code)
            return None
        data = resp.json()
        results = data.get("results") if isinstance(data, dict) else None
        if not results or not isinstance(results[0], dict) or not results[0].get("symbol"):
            return None
        return QuoteResult.from_brapi(results[0])

    __call__ = fetch_quote


class YFinanceQuoteSource:
    """Yahoo Finance fallback; B3 tickers carry the .SA suffix there."""

    def __init__(self, suffix: str = ".SA") -> None:
        self.suffix = suffix

    def _symbol(self, ticker: str) -> str:
        t = ticker.strip().upper()
        return t if "." in t else f"{t}{self.suffix}"

    def fetch_quote(self, ticker: str) -> Optional[QuoteResult]:
        symbol = self._symbol(ticker)
        t = yf.Ticker(symbol)
        hist = t.history(period="1y", auto_adjust=False)
        if hist is None or hist.empty or "Close" not in hist.columns:
            return None

        close = pd.to_numeric(hist["Close"], errors="coerce").dropna()
        if close.empty:
            return None
        price = float(close.iloc[-1])
        prev = float(close.iloc[-2]) if len(close) > 1 else None
        change = price - prev if prev is not None else None
        change_pct = (change / prev * 100.0) if change is not None and prev else None

        high_col = hist["High"] if "High" in hist.columns else close
        low_col = hist["Low"] if "Low" in hist.columns else close
        volume = None
        if "Volume" in hist.columns:
            vol = pd.to_numeric(hist["Volume"], errors="coerce").dropna()
            volume = float(vol.iloc[-1]) if not vol.empty else None

        info: Dict[str, Any] = {}
        try:
            info = t.info or {}
        except Exception as e:  # info scraping is flaky; the price is enough
            log.debug("yfinance info failed for %s: %s", symbol, e)

        return QuoteResult(
            symbol=ticker.strip().upper(),
            price=price,
            change=change,
            change_percent=change_pct,
            volume=volume,
            market_time=close.index[-1].to_pydatetime(),
            week_52_high=float(pd.to_numeric(high_col, errors="coerce").max()),
            week_52_low=float(pd.to_numeric(low_col, errors="coerce").min()),
            book_value_per_share=parse_optional_number(info.get("bookValue")),
            price_to_book=parse_optional_number(info.get("priceToBook")),
            source="yfinance",
        )

    __call__ = fetch_quote


class ChainedQuoteFetcher:
    """
    Try each source in order. A source that raises or returns a quote
    without a price is logged and the next one is tried.
    """

    def __init__(self, sources: List[QuoteFetcher]) -> None:
        self.sources = sources

    def __call__(self, ticker: str) -> Optional[QuoteResult]:
        for source in self.sources:
            name = type(source).__name__
            try:
                quote = source(ticker)
            except Exception as e:
                log.warning("%s quote failed for %s: %s", name, ticker, e)
                continue
            if quote is not None and quote.price:
                return quote
        return None

    def close(self) -> None:
        """Close every source that holds a connection pool."""
        for source in self.sources:
            close = getattr(source, "close", None)
            if callable(close):
                close()


def build_quote_fetcher() -> ChainedQuoteFetcher:
    sources: List[QuoteFetcher] = [BrapiClient()]
    if settings.fii_quote_use_yfinance:
        sources.append(YFinanceQuoteSource())
    return ChainedQuoteFetcher(sources)
