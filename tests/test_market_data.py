from datetime import date, datetime, timezone

import httpx

from app.services.market_data import (
    BrapiClient,
    ChainedQuoteFetcher,
    QuoteResult,
    resolve_price_to_book,
    resolve_quote_date,
)

BASE_URL = "https://brapi.test/api/quote"
TODAY = date(2024, 5, 10)


def _client(handler, token="secret"):
    return BrapiClient(base_url=BASE_URL, token=token, timeout=5, transport=httpx.MockTransport(handler))


def test_brapi_fetch_quote_parses_result():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["token"] = request.url.params.get("token")
        return httpx.Response(
            200,
            json={
                "results": [
                    {
                        "symbol": "HGLG11",
                        "regularMarketPrice": 160.5,
                        "regularMarketChange": 1.5,
                        "regularMarketChangePercent": 0.94,
                        "regularMarketVolume": 120000,
                        "regularMarketTime": "2024-05-09T20:07:00.000Z",
                        "fiftyTwoWeekHigh": 170.0,
                        "fiftyTwoWeekLow": 150.0,
                        "priceToBook": 0.98,
                    }
                ]
            },
        )

    quote = _client(handler).fetch_quote("HGLG11")
    assert seen == {"path": "/api/quote/HGLG11", "token": "secret"}
    assert quote.symbol == "HGLG11"
    assert quote.price == 160.5
    assert quote.week_52_high == 170.0
    assert quote.price_to_book == 0.98
    assert quote.book_value_per_share is None
    assert quote.source == "brapi"


def test_brapi_http_error_returns_none():
    client = _client(lambda request: httpx.Response(404, json={"error": True}))
    assert client.fetch_quote("XXXX11") is None


def test_brapi_empty_results_returns_none():
    client = _client(lambda request: httpx.Response(200, json={"results": []}), token=None)
    assert client("HGLG11") is None


def test_resolve_quote_date():
    assert resolve_quote_date("2024-05-01T20:00:00Z", TODAY) == date(2024, 5, 1)
    # 22:00 in Sao Paulo is already the next day in UTC
    assert resolve_quote_date("2024-05-01T22:00:00-03:00", TODAY) == date(2024, 5, 2)
    assert resolve_quote_date(0, TODAY) == date(1970, 1, 1)
    assert resolve_quote_date(datetime(2024, 5, 3, 12, tzinfo=timezone.utc), TODAY) == date(2024, 5, 3)
    assert resolve_quote_date("not a date", TODAY) == TODAY
    assert resolve_quote_date(None, TODAY) == TODAY


def test_resolve_price_to_book():
    assert resolve_price_to_book(100.0, 80.0) == 1.25
    assert resolve_price_to_book(100.0, 80.0, 0.9) == 0.9
    assert resolve_price_to_book(100.0, 0.0) is None
    assert resolve_price_to_book(None, 80.0) is None


def test_chained_fetcher_falls_through():
    def broken(ticker):
        raise httpx.ConnectError("down")

    def no_price(ticker):
        return QuoteResult(symbol=ticker, price=None)

    def good(ticker):
        return QuoteResult(symbol=ticker, price=10.0, source="yfinance")

    fetch = ChainedQuoteFetcher([broken, no_price, good])
    assert fetch("HGLG11").source == "yfinance"
    assert ChainedQuoteFetcher([broken, no_price])("HGLG11") is None


def test_chained_fetcher_close_closes_sources():
    brapi = _client(lambda request: httpx.Response(200, json={"results": []}))
    closed = []

    class Source:
        def __call__(self, ticker):
            return None

        def close(self):
            closed.append(True)

    def plain(ticker):
        return None

    ChainedQuoteFetcher([brapi, Source(), plain]).close()
    assert brapi._client.is_closed
    assert closed == [True]
