from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from app.api.deps import get_store, get_user_id
from app.services.csv_io import EXPORT_COLUMNS, export_table, import_table
from app.services.store import RecordStore, StoreError

router = APIRouter(prefix="/api/v1/csv", tags=["csv"])


class CsvImportRequest(BaseModel):
    content: str


def _check_table(table: str) -> None:
    if table not in EXPORT_COLUMNS:
        raise HTTPException(status_code=404, detail=f"unknown table: {table}")


@router.get("/{table}", response_class=PlainTextResponse)
def export_csv(
    table: str,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> PlainTextResponse:
    _check_table(table)
    try:
        content = export_table(store, user_id, table)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not export {table}: {e}")
    return PlainTextResponse(
        content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{table}.csv"'},
    )


@router.post("/{table}")
def import_csv(
    table: str,
    payload: CsvImportRequest,
    store: RecordStore = Depends(get_store),
    user_id: str = Depends(get_user_id),
) -> Dict:
    _check_table(table)
    try:
        return import_table(store, user_id, table, payload.content)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Could not import {table}: {e}")
