from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from app.infra.models import (
    Asset,
    AssetCatalog,
    Fundamentals,
    Income,
    Position,
    UserSettings,
    Valuation,
)
from app.services.market_data import resolve_price_to_book
from app.services.parsing import (
    ASSET_STATUSES,
    normalize_asset_type,
    normalize_ticker,
    parse_month_key,
    parse_optional_date,
    parse_optional_number,
    parse_optional_text,
)
from app.services.store import CONFLICT_KEYS, RecordStore

log = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, float] = {
    "goal_amount": 100000.0,
    "alert_max_asset_pct": 0.2,
    "alert_income_drop_pct": 0.2,
    "alert_vacancy_pct": 0.15,
    "alert_asset_dy_drop_pct": 0.2,
}


class RecordValidationError(ValueError):
    """Payload rejected before anything was written."""


class RecordNotFound(LookupError):
    pass


def _owned(store: RecordStore, model: Any, record_id: Optional[str], user_id: str) -> Optional[Any]:
    if not record_id:
        return None
    row = store.get(model, record_id)
    if row is None or row.user_id != user_id:
        raise RecordNotFound(f"{model.__tablename__} {record_id} not found")
    return row


def _require_asset(store: RecordStore, user_id: str, asset_id: Any) -> Asset:
    if not asset_id:
        raise RecordValidationError("asset_id is required")
    asset = store.get(Asset, str(asset_id))
    if asset is None or asset.user_id != user_id:
        raise RecordNotFound(f"assets {asset_id} not found")
    return asset


# ---------- Assets ----------


def save_asset(store: RecordStore, user_id: str, payload: Mapping[str, Any]) -> Asset:
    ticker = normalize_ticker(payload.get("ticker"))
    if not ticker:
        raise RecordValidationError("ticker is required")

    raw_type = parse_optional_text(payload.get("type"))
    asset_type = normalize_asset_type(raw_type)
    if raw_type and asset_type is None:
        raise RecordValidationError(f"unknown asset type: {raw_type}")

    status = parse_optional_text(payload.get("status"))
    if status is not None and status.lower() not in ASSET_STATUSES:
        raise RecordValidationError(f"unknown status: {status}")

    record_id = parse_optional_text(payload.get("id"))
    _owned(store, Asset, record_id, user_id)

    record: Dict[str, Any] = {
        "id": record_id,
        "user_id": user_id,
        "ticker": ticker,
        "name": parse_optional_text(payload.get("name")),
        "type": asset_type,
        "sector": parse_optional_text(payload.get("sector")),
        "notes": parse_optional_text(payload.get("notes")),
        "status": status.lower() if status else None,
    }
    return store.upsert(Asset, record, CONFLICT_KEYS[Asset])


def delete_asset(store: RecordStore, user_id: str, asset_id: str) -> bool:
    """Dependent positions, incomes, valuations, quotes and fundamentals go with it."""
    return store.delete(Asset, asset_id, user_id=user_id)


# ---------- Positions ----------


def save_position(store: RecordStore, user_id: str, payload: Mapping[str, Any]) -> Position:
    asset = _require_asset(store, user_id, payload.get("asset_id"))
    quantity = parse_optional_number(payload.get("quantity"))
    avg_price = parse_optional_number(payload.get("avg_price"))
    if quantity is None or avg_price is None:
        raise RecordValidationError("quantity and avg_price are required")
    if quantity < 0 or avg_price < 0:
        raise RecordValidationError("quantity and avg_price must not be negative")

    record = {
        "user_id": user_id,
        "asset_id": asset.id,
        "quantity": quantity,
        "avg_price": avg_price,
        "costs": parse_optional_number(payload.get("costs")),
        "start_date": parse_optional_date(payload.get("start_date")),
    }
    return store.upsert(Position, record, CONFLICT_KEYS[Position])


# ---------- Incomes ----------


def derive_income_amount(
    amount: Optional[float],
    amount_per_share: Optional[float],
    quantity: Optional[float],
) -> Optional[float]:
    """Total received; falls back to per-share value x position quantity."""
    if amount:
        return amount
    if amount_per_share and quantity:
        return amount_per_share * quantity
    return amount


def save_income(store: RecordStore, user_id: str, payload: Mapping[str, Any]) -> Income:
    asset = _require_asset(store, user_id, payload.get("asset_id"))
    month = parse_month_key(payload.get("month"))
    if month is None:
        raise RecordValidationError("month must be YYYY-MM")

    record_id = parse_optional_text(payload.get("id"))
    _owned(store, Income, record_id, user_id)

    amount = parse_optional_number(payload.get("amount"))
    per_share = parse_optional_number(payload.get("amount_per_share"))
    # asset.position can be stale in a long-lived session
    positions = store.fetch_all(Position, user_id=user_id, asset_id=asset.id)
    quantity = parse_optional_number(positions[0].quantity) if positions else None

    record = {
        "id": record_id,
        "user_id": user_id,
        "asset_id": asset.id,
        "month": month,
        "amount": derive_income_amount(amount, per_share, quantity),
        "amount_per_share": per_share,
    }
    return store.upsert(Income, record, CONFLICT_KEYS[Income])


def delete_income(store: RecordStore, user_id: str, income_id: str) -> bool:
    return store.delete(Income, income_id, user_id=user_id)


# ---------- Valuations / fundamentals ----------


def save_valuation(store: RecordStore, user_id: str, payload: Mapping[str, Any]) -> Valuation:
    """Update by id when given, otherwise append a new snapshot."""
    asset = _require_asset(store, user_id, payload.get("asset_id"))
    record_id = parse_optional_text(payload.get("id"))
    _owned(store, Valuation, record_id, user_id)

    price = parse_optional_number(payload.get("price"))
    vp = parse_optional_number(payload.get("vp_per_share"))
    # an explicit 0 P/VP means "not informed"
    p_vp = parse_optional_number(payload.get("p_vp")) or None

    record = {
        "id": record_id,
        "user_id": user_id,
        "asset_id": asset.id,
        "date": parse_optional_date(payload.get("date")),
        "price": price,
        "vp_per_share": vp,
        "p_vp": resolve_price_to_book(price, vp, p_vp),
    }
    return store.upsert(Valuation, record, conflict_keys=())


def save_fundamentals(store: RecordStore, user_id: str, payload: Mapping[str, Any]) -> Fundamentals:
    asset = _require_asset(store, user_id, payload.get("asset_id"))
    record = {
        "user_id": user_id,
        "asset_id": asset.id,
        "vacancy_physical": parse_optional_number(payload.get("vacancy_physical")),
        "vacancy_financial": parse_optional_number(payload.get("vacancy_financial")),
        "wault_years": parse_optional_number(payload.get("wault_years")),
        "debt_ratio": parse_optional_number(payload.get("debt_ratio")),
        "liquidity_daily": parse_optional_number(payload.get("liquidity_daily")),
        "notes": parse_optional_text(payload.get("notes")),
    }
    return store.upsert(Fundamentals, record, CONFLICT_KEYS[Fundamentals])


# ---------- Settings ----------


def settings_with_defaults(row: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    out = dict(DEFAULT_SETTINGS)
    for field in DEFAULT_SETTINGS:
        value = parse_optional_number((row or {}).get(field))
        if value is not None:
            out[field] = value
    return out


def save_settings(store: RecordStore, user_id: str, payload: Mapping[str, Any]) -> UserSettings:
    current = store.fetch_records(UserSettings, user_id=user_id)
    merged = settings_with_defaults(current[0] if current else None)
    for field in DEFAULT_SETTINGS:
        if field not in payload:
            continue
        value = parse_optional_number(payload.get(field))
        if value is None or value < 0:
            raise RecordValidationError(f"{field} must be a non-negative number")
        merged[field] = value
    return store.upsert(UserSettings, {"user_id": user_id, **merged}, CONFLICT_KEYS[UserSettings])


# ---------- Catalog ----------


def save_catalog_entry(store: RecordStore, user_id: str, payload: Mapping[str, Any]) -> AssetCatalog:
    ticker = normalize_ticker(payload.get("ticker"))
    if not ticker:
        raise RecordValidationError("ticker is required")
    record = {
        "user_id": user_id,
        "ticker": ticker,
        "name": parse_optional_text(payload.get("name")),
        "type": normalize_asset_type(payload.get("type")),
        "sector": parse_optional_text(payload.get("sector")),
    }
    return store.upsert(AssetCatalog, record, CONFLICT_KEYS[AssetCatalog])


def sync_catalog_from_assets(store: RecordStore, user_id: str) -> List[AssetCatalog]:
    """Make sure every held asset is also on the user's catalog."""
    rows = [
        {
            "user_id": user_id,
            "ticker": a.ticker,
            "name": a.name,
            "type": a.type,
            "sector": a.sector,
        }
        for a in store.fetch_all(Asset, user_id=user_id)
    ]
    synced = store.upsert_many(AssetCatalog, rows, CONFLICT_KEYS[AssetCatalog])
    log.info("catalog synced for user %s: %d entries", user_id, len(synced))
    return synced
