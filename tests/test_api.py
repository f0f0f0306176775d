import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db, get_quote_fetcher, get_store
from app.main import app
from app.services.market_data import QuoteResult

HEADERS = {"X-User-Id": "u1"}


def _fake_fetcher(ticker):
    return QuoteResult(symbol=ticker, price=100.0, market_time="2024-05-01T20:00:00Z")


@pytest.fixture()
def client(db, store):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_quote_fetcher] = lambda: _fake_fetcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create_asset(client, ticker="HGLG11", **extra):
    resp = client.post("/api/v1/assets", json={"ticker": ticker, **extra}, headers=HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_root(client):
    assert client.get("/").json() == {"service": "fii-tracker", "status": "running"}


def test_missing_user_header(client):
    assert client.get("/api/v1/assets").status_code == 401


def test_asset_crud(client):
    asset = _create_asset(client, ticker="hglg11", type="tijolo")
    assert asset["ticker"] == "HGLG11"
    assert asset["type"] == "brick"

    listed = client.get("/api/v1/assets", headers=HEADERS).json()
    assert [a["ticker"] for a in listed] == ["HGLG11"]
    assert client.get("/api/v1/assets", headers={"X-User-Id": "u2"}).json() == []

    assert client.delete(f"/api/v1/assets/{asset['id']}", headers=HEADERS).status_code == 200
    assert client.delete(f"/api/v1/assets/{asset['id']}", headers=HEADERS).status_code == 404


def test_validation_errors(client):
    resp = client.post("/api/v1/assets", json={"ticker": "HGLG11", "type": "crypto"}, headers=HEADERS)
    assert resp.status_code == 400

    resp = client.post(
        "/api/v1/positions",
        json={"asset_id": "missing", "quantity": 1, "avg_price": 1},
        headers=HEADERS,
    )
    assert resp.status_code == 404


def test_position_and_income_feed_dashboard(client):
    asset = _create_asset(client)
    resp = client.post(
        "/api/v1/positions",
        json={"asset_id": asset["id"], "quantity": "100", "avg_price": "160,00"},
        headers=HEADERS,
    )
    assert resp.status_code == 200, resp.text
    resp = client.post(
        "/api/v1/incomes",
        json={"asset_id": asset["id"], "month": "2024-05", "amount_per_share": 1.1},
        headers=HEADERS,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["amount"] == pytest.approx(110.0)

    dash = client.get("/api/v1/portfolio/dashboard?as_of=2024-05-20", headers=HEADERS).json()
    assert dash["invested_value"] == 16000.0
    assert dash["last_month_income"] == pytest.approx(110.0)
    assert dash["assets"][0]["ticker"] == "HGLG11"

    alerts = client.get("/api/v1/portfolio/alerts?as_of=2024-05-20", headers=HEADERS).json()
    assert "High concentration: 100.00% in a single asset." in alerts


def test_analysis_filter_validation(client):
    assert client.get("/api/v1/portfolio/analysis?filter=risk", headers=HEADERS).status_code == 200
    assert client.get("/api/v1/portfolio/analysis?filter=cheap", headers=HEADERS).status_code == 400


def test_settings_roundtrip(client):
    defaults = client.get("/api/v1/settings", headers=HEADERS).json()
    assert defaults["goal_amount"] == 100000.0

    resp = client.put("/api/v1/settings", json={"goal_amount": 50000}, headers=HEADERS)
    assert resp.status_code == 200
    assert client.get("/api/v1/settings", headers=HEADERS).json()["goal_amount"] == 50000.0

    assert client.put("/api/v1/settings", json={"alert_vacancy_pct": -1}, headers=HEADERS).status_code == 400


def test_quote_update(client):
    _create_asset(client)
    resp = client.post("/api/v1/quotes/update")
    assert resp.status_code == 200
    assert resp.json() == {
        "updatedAssets": 1,
        "updatedCatalog": 0,
        "updatedValuations": 1,
        "tickers": 1,
    }
    valuations = client.get("/api/v1/valuations", headers=HEADERS).json()
    assert [v["date"] for v in valuations] == ["2024-05-01"]


def test_csv_export_and_import(client):
    resp = client.post(
        "/api/v1/csv/assets",
        json={"content": "ticker,type\nHGLG11,tijolo\nKNRI11,tijolo\n"},
        headers=HEADERS,
    )
    assert resp.json()["imported"] == 2

    resp = client.get("/api/v1/csv/assets", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.text.splitlines()[0] == "ticker,name,type,sector,notes,status"
    assert len(resp.text.splitlines()) == 3

    assert client.get("/api/v1/csv/unknown", headers=HEADERS).status_code == 404


def test_catalog_sync(client):
    _create_asset(client)
    resp = client.post("/api/v1/catalog/sync", headers=HEADERS)
    assert resp.json() == {"synced": 1}
    assert [c["ticker"] for c in client.get("/api/v1/catalog", headers=HEADERS).json()] == ["HGLG11"]


def test_health(client):
    body = client.get("/health/").json()
    assert body["service"] == "fii-tracker"
    assert body["status"] == "ok"
    assert body["db_ok"] is True


def test_quote_fetcher_dependency_closes_clients(monkeypatch):
    from app.api import deps

    closed = []

    class Fetcher:
        def __call__(self, ticker):
            return None

        def close(self):
            closed.append(True)

    monkeypatch.setattr(deps, "build_quote_fetcher", Fetcher)
    gen = deps.get_quote_fetcher()
    fetcher = next(gen)
    assert closed == []
    with pytest.raises(StopIteration):
        next(gen)
    assert isinstance(fetcher, Fetcher)
    assert closed == [True]
