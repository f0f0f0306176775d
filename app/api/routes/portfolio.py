from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_store, get_user_id
from app.services.portfolio import (
    ANALYSIS_FILTERS,
    PortfolioData,
    build_analysis,
    build_dashboard,
    load_portfolio,
)
from app.services.store import RecordStore, StoreError

router = APIRouter(prefix="/api/v1/portfolio", tags=["portfolio"])


def _load(store: RecordStore, user_id: str) -> PortfolioData:
    try:
        return load_portfolio(store, user_id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not load the portfolio: {e}")


@router.get("/dashboard")
def get_dashboard(
    as_of: Optional[date] = Query(
        default=None,
        description="Reference date for the trailing month windows (YYYY-MM-DD). Defaults to today.",
    ),
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    data = _load(store, user_id)
    return build_dashboard(data, as_of or date.today())


@router.get("/analysis")
def get_analysis(
    filter: str = Query(default="all", description=f"One of: {', '.join(ANALYSIS_FILTERS)}"),
    as_of: Optional[date] = Query(default=None),
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    if filter not in ANALYSIS_FILTERS:
        raise HTTPException(status_code=400, detail=f"unknown filter: {filter}")
    data = _load(store, user_id)
    return build_analysis(data, as_of or date.today(), filter)


@router.get("/alerts")
def get_alerts(
    as_of: Optional[date] = Query(default=None),
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> List[str]:
    data = _load(store, user_id)
    return build_dashboard(data, as_of or date.today())["alerts"]
