from __future__ import annotations

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_quote_fetcher, get_store
from app.infra.settings import settings
from app.services.market_data import QuoteFetcher
from app.services.quote_sync import update_market_quotes
from app.services.store import RecordStore, StoreError

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/quotes", tags=["quotes"])


@router.post("/update")
def trigger_quote_update(
    store: RecordStore = Depends(get_store),
    fetch_quote: QuoteFetcher = Depends(get_quote_fetcher),
) -> Dict:
    """
    Refresh market quotes for every asset and catalog ticker.
    Runs the same batch as scripts/update_market_quotes.py.
    """
    try:
        summary = update_market_quotes(
            store,
            fetch_quote,
            max_workers=settings.fii_quote_fetch_workers,
        )
    except StoreError as e:
        log.error("quote update failed: %s", e)
        raise HTTPException(status_code=500, detail="Could not update quotes right now.")
    return summary.as_dict()
