import pytest

from app.infra.models import Asset, AssetCatalog, Income, Position, Valuation
from app.services import records
from app.services.records import RecordNotFound, RecordValidationError


def _asset(store, ticker="hglg11", user_id="u1", **extra):
    return records.save_asset(store, user_id, {"ticker": ticker, **extra})


def test_save_asset_normalizes_and_upserts_by_ticker(store):
    first = _asset(store, type="Tijolo", name="CSHG Logistica")
    assert first.ticker == "HGLG11"
    assert first.type == "brick"

    second = _asset(store, ticker="HGLG11 ", sector="Logistics")
    assert second.id == first.id
    assert second.sector == "Logistics"
    assert len(store.fetch_all(Asset, user_id="u1")) == 1


def test_save_asset_validation(store):
    with pytest.raises(RecordValidationError):
        records.save_asset(store, "u1", {"ticker": "  "})
    with pytest.raises(RecordValidationError):
        _asset(store, type="crypto")
    with pytest.raises(RecordValidationError):
        _asset(store, status="great")


def test_same_ticker_for_two_users(store):
    a = _asset(store, user_id="u1")
    b = _asset(store, user_id="u2")
    assert a.id != b.id


def test_save_position_requires_owned_asset(store):
    asset = _asset(store)
    with pytest.raises(RecordNotFound):
        records.save_position(store, "u2", {"asset_id": asset.id, "quantity": 1, "avg_price": 1})
    with pytest.raises(RecordValidationError):
        records.save_position(store, "u1", {"asset_id": asset.id, "quantity": "", "avg_price": 1})
    with pytest.raises(RecordValidationError):
        records.save_position(store, "u1", {"asset_id": asset.id, "quantity": -1, "avg_price": 1})

    pos = records.save_position(
        store, "u1", {"asset_id": asset.id, "quantity": "100", "avg_price": "160,50", "start_date": "2023-01-15"}
    )
    assert pos.quantity == 100.0
    assert pos.avg_price == 160.5
    records.save_position(store, "u1", {"asset_id": asset.id, "quantity": 120, "avg_price": 158})
    assert len(store.fetch_all(Position, user_id="u1")) == 1


def test_derive_income_amount():
    assert records.derive_income_amount(50.0, 1.0, 100) == 50.0
    assert records.derive_income_amount(None, 0.8, 100) == pytest.approx(80.0)
    assert records.derive_income_amount(None, 0.8, None) is None


def test_save_income_derives_amount_from_position(store):
    asset = _asset(store)
    records.save_position(store, "u1", {"asset_id": asset.id, "quantity": 100, "avg_price": 160})
    income = records.save_income(
        store, "u1", {"asset_id": asset.id, "month": "2024-05", "amount_per_share": "0,8"}
    )
    assert income.amount == pytest.approx(80.0)

    again = records.save_income(store, "u1", {"asset_id": asset.id, "month": "2024-05", "amount": 85})
    assert again.id == income.id
    assert again.amount == 85.0
    assert len(store.fetch_all(Income, user_id="u1")) == 1


def test_save_income_rejects_bad_month(store):
    asset = _asset(store)
    with pytest.raises(RecordValidationError):
        records.save_income(store, "u1", {"asset_id": asset.id, "month": "05/2024", "amount": 10})


def test_save_valuation_appends_and_resolves_pvp(store):
    asset = _asset(store)
    v1 = records.save_valuation(
        store, "u1", {"asset_id": asset.id, "date": "2024-05-01", "price": 100, "vp_per_share": 80}
    )
    assert v1.p_vp == pytest.approx(1.25)
    v2 = records.save_valuation(
        store, "u1", {"asset_id": asset.id, "date": "2024-05-01", "price": 100, "p_vp": 0}
    )
    assert v2.p_vp is None
    assert len(store.fetch_all(Valuation, asset_id=asset.id)) == 2

    updated = records.save_valuation(store, "u1", {"id": v2.id, "asset_id": asset.id, "p_vp": 0.97})
    assert updated.id == v2.id
    assert updated.p_vp == 0.97
    assert len(store.fetch_all(Valuation, asset_id=asset.id)) == 2


def test_settings_defaults_and_merge(store):
    assert records.settings_with_defaults(None) == records.DEFAULT_SETTINGS

    records.save_settings(store, "u1", {"goal_amount": 250000})
    saved = records.save_settings(store, "u1", {"alert_vacancy_pct": 0.1})
    assert saved.goal_amount == 250000
    assert saved.alert_vacancy_pct == 0.1
    assert saved.alert_max_asset_pct == 0.2

    with pytest.raises(RecordValidationError):
        records.save_settings(store, "u1", {"goal_amount": -1})


def test_delete_asset_removes_dependents(store):
    asset = _asset(store)
    records.save_position(store, "u1", {"asset_id": asset.id, "quantity": 10, "avg_price": 100})
    records.save_income(store, "u1", {"asset_id": asset.id, "month": "2024-05", "amount": 8})

    assert records.delete_asset(store, "u2", asset.id) is False
    assert records.delete_asset(store, "u1", asset.id) is True
    assert store.fetch_all(Asset) == []
    assert store.fetch_all(Position) == []
    assert store.fetch_all(Income) == []


def test_delete_income(store):
    asset = _asset(store)
    income = records.save_income(store, "u1", {"asset_id": asset.id, "month": "2024-05", "amount": 8})
    assert records.delete_income(store, "u1", income.id) is True
    assert records.delete_income(store, "u1", income.id) is False


def test_sync_catalog_from_assets(store):
    _asset(store, ticker="HGLG11", type="brick")
    _asset(store, ticker="MXRF11", type="paper")
    records.save_catalog_entry(store, "u1", {"ticker": "HGLG11", "name": "old"})

    synced = records.sync_catalog_from_assets(store, "u1")
    assert len(synced) == 2
    catalog = {c.ticker: c for c in store.fetch_all(AssetCatalog, user_id="u1")}
    assert sorted(catalog) == ["HGLG11", "MXRF11"]
    assert catalog["MXRF11"].type == "paper"


def test_income_per_share_uses_position_saved_later_in_same_session(store):
    asset = _asset(store)
    first = records.save_income(
        store, "u1", {"asset_id": asset.id, "month": "2024-01", "amount_per_share": 1}
    )
    assert first.amount is None

    records.save_position(store, "u1", {"asset_id": asset.id, "quantity": 10, "avg_price": 100})
    second = records.save_income(
        store, "u1", {"asset_id": asset.id, "month": "2024-02", "amount_per_share": 1}
    )
    assert second.amount == 10.0


def test_delete_asset_after_relationship_was_loaded(store):
    asset = _asset(store)
    assert asset.position is None
    records.save_position(store, "u1", {"asset_id": asset.id, "quantity": 10, "avg_price": 100})

    assert records.delete_asset(store, "u1", asset.id) is True
    assert store.fetch_all(Position) == []


def test_unknown_asset_id_is_not_found(store):
    with pytest.raises(RecordNotFound):
        records.save_income(store, "u1", {"asset_id": "missing", "month": "2024-01", "amount": 1})
    with pytest.raises(RecordValidationError):
        records.save_income(store, "u1", {"month": "2024-01", "amount": 1})
