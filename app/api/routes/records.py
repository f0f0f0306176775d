from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.deps import get_store, get_user_id
from app.infra.models import (
    Asset,
    AssetCatalog,
    Fundamentals,
    Income,
    Position,
    UserSettings,
    Valuation,
)
from app.services import records
from app.services.records import RecordNotFound, RecordValidationError
from app.services.store import RecordStore, StoreError, row_to_dict

router = APIRouter(prefix="/api/v1", tags=["records"])

# form fields may arrive as text ("12,5") or numbers
Number = Optional[Union[float, str]]


class AssetIn(BaseModel):
    id: Optional[str] = None
    ticker: str
    name: Optional[str] = None
    type: Optional[str] = None
    sector: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class PositionIn(BaseModel):
    asset_id: str
    quantity: Number = None
    avg_price: Number = None
    costs: Number = None
    start_date: Optional[dt.date] = None


class IncomeIn(BaseModel):
    id: Optional[str] = None
    asset_id: str
    month: str
    amount: Number = None
    amount_per_share: Number = None


class ValuationIn(BaseModel):
    id: Optional[str] = None
    asset_id: str
    date: Optional[dt.date] = None
    price: Number = None
    vp_per_share: Number = None
    p_vp: Number = None


class FundamentalsIn(BaseModel):
    asset_id: str
    vacancy_physical: Number = None
    vacancy_financial: Number = None
    wault_years: Number = None
    debt_ratio: Number = None
    liquidity_daily: Number = None
    notes: Optional[str] = None


class SettingsIn(BaseModel):
    goal_amount: Number = None
    alert_max_asset_pct: Number = None
    alert_income_drop_pct: Number = None
    alert_vacancy_pct: Number = None
    alert_asset_dy_drop_pct: Number = None


class CatalogIn(BaseModel):
    ticker: str
    name: Optional[str] = None
    type: Optional[str] = None
    sector: Optional[str] = None


def _save(fn, store: RecordStore, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        row = fn(store, user_id, payload)
    except RecordValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not save the record: {e}")
    return row_to_dict(row)


def _list(store: RecordStore, model, user_id: str) -> List[Dict[str, Any]]:
    try:
        return store.fetch_records(model, user_id=user_id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not load records: {e}")


# ---------- Assets ----------


@router.get("/assets")
def list_assets(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> List[Dict]:
    return sorted(_list(store, Asset, user_id), key=lambda a: a["ticker"])


@router.post("/assets")
def upsert_asset(
    payload: AssetIn,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    return _save(records.save_asset, store, user_id, payload.model_dump())


@router.delete("/assets/{asset_id}")
def delete_asset(
    asset_id: str,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    try:
        deleted = records.delete_asset(store, user_id, asset_id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not delete the asset: {e}")
    if not deleted:
        raise HTTPException(status_code=404, detail="asset not found")
    return {"deleted": asset_id}


# ---------- Positions / incomes ----------


@router.get("/positions")
def list_positions(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> List[Dict]:
    return _list(store, Position, user_id)


@router.post("/positions")
def upsert_position(
    payload: PositionIn,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    return _save(records.save_position, store, user_id, payload.model_dump())


@router.get("/incomes")
def list_incomes(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> List[Dict]:
    return sorted(_list(store, Income, user_id), key=lambda i: i["month"], reverse=True)


@router.post("/incomes")
def upsert_income(
    payload: IncomeIn,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    return _save(records.save_income, store, user_id, payload.model_dump())


@router.delete("/incomes/{income_id}")
def delete_income(
    income_id: str,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    try:
        deleted = records.delete_income(store, user_id, income_id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not delete the income: {e}")
    if not deleted:
        raise HTTPException(status_code=404, detail="income not found")
    return {"deleted": income_id}


# ---------- Valuations / fundamentals ----------


@router.get("/valuations")
def list_valuations(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> List[Dict]:
    return _list(store, Valuation, user_id)


@router.post("/valuations")
def save_valuation(
    payload: ValuationIn,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    return _save(records.save_valuation, store, user_id, payload.model_dump())


@router.get("/fundamentals")
def list_fundamentals(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> List[Dict]:
    return _list(store, Fundamentals, user_id)


@router.post("/fundamentals")
def upsert_fundamentals(
    payload: FundamentalsIn,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    return _save(records.save_fundamentals, store, user_id, payload.model_dump())


# ---------- Settings ----------


@router.get("/settings")
def get_settings(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> Dict:
    rows = _list(store, UserSettings, user_id)
    return records.settings_with_defaults(rows[0] if rows else None)


@router.put("/settings")
def put_settings(
    payload: SettingsIn,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    return _save(records.save_settings, store, user_id, payload.model_dump(exclude_unset=True))


# ---------- Catalog ----------


@router.get("/catalog")
def list_catalog(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> List[Dict]:
    return sorted(_list(store, AssetCatalog, user_id), key=lambda a: a["ticker"])


@router.post("/catalog")
def upsert_catalog_entry(
    payload: CatalogIn,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    return _save(records.save_catalog_entry, store, user_id, payload.model_dump())


@router.post("/catalog/sync")
def sync_catalog(store: RecordStore = Depends(get_store), user_id: str = Depends(get_user_id)) -> Dict:
    try:
        synced = records.sync_catalog_from_assets(store, user_id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not sync the catalog: {e}")
    return {"synced": len(synced)}
