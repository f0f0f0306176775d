from __future__ import annotations

import csv
import io
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from app.infra.models import Asset, AssetCatalog, Income, Position
from app.services.parsing import normalize_ticker
from app.services.records import (
    RecordNotFound,
    RecordValidationError,
    save_asset,
    save_catalog_entry,
    save_income,
    save_position,
)
from app.services.store import RecordStore

log = logging.getLogger(__name__)

EXPORT_COLUMNS: Dict[str, Sequence[str]] = {
    "assets": ("ticker", "name", "type", "sector", "notes", "status"),
    "positions": ("ticker", "quantity", "avg_price", "start_date", "costs"),
    "incomes": ("ticker", "month", "amount", "amount_per_share"),
    "catalog": ("ticker", "name", "type", "sector"),
}


def build_csv(rows: List[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> str:
    """Comma separated text with a header row; None becomes an empty cell."""
    if not rows:
        return ""
    headers = list(columns or rows[0].keys())
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else row.get(h) for h in headers])
    return buf.getvalue().rstrip("\n")


def parse_csv_lines(content: str) -> List[Tuple[int, Dict[str, str]]]:
    """
    (source line number, row) pairs keyed by the trimmed header. Blank rows
    are dropped but do not shift the numbering. Spreadsheet exports that use
    ';' as separator are accepted too.
    """
    cleaned = (content or "").lstrip("\ufeff").rstrip()
    if not cleaned.strip():
        return []
    first_line = cleaned.splitlines()[0]
    delimiter = ";" if first_line.count(";") > first_line.count(",") else ","
    reader = csv.DictReader(io.StringIO(cleaned), delimiter=delimiter)
    out: List[Tuple[int, Dict[str, str]]] = []
    for row in reader:
        record = {
            (k or "").strip(): (v or "").strip()
            for k, v in row.items()
            if k is not None
        }
        if any(record.values()):
            out.append((reader.line_num, record))
    return out


def parse_csv(content: str) -> List[Dict[str, str]]:
    return [row for _, row in parse_csv_lines(content)]


# ---------- Export ----------


def export_table(store: RecordStore, user_id: str, table: str) -> str:
    if table not in EXPORT_COLUMNS:
        raise ValueError(f"unknown table: {table}")
    columns = EXPORT_COLUMNS[table]

    if table == "assets":
        rows = store.fetch_records(Asset, user_id=user_id)
    elif table == "catalog":
        rows = store.fetch_records(AssetCatalog, user_id=user_id)
    else:
        tickers = {a.id: a.ticker for a in store.fetch_all(Asset, user_id=user_id)}
        model = Position if table == "positions" else Income
        rows = [
            {**r, "ticker": tickers.get(r["asset_id"])}
            for r in store.fetch_records(model, user_id=user_id)
        ]
    rows = sorted(rows, key=lambda r: (r.get("ticker") or "", str(r.get("month") or "")))
    return build_csv(rows, columns)


# ---------- Import ----------


def import_table(store: RecordStore, user_id: str, table: str, content: str) -> Dict[str, Any]:
    """
    Upsert every CSV row through the regular save functions.
    Rows referencing unknown tickers or failing validation are skipped and
    reported; they do not stop the import.
    """
    if table not in EXPORT_COLUMNS:
        raise ValueError(f"unknown table: {table}")
    rows = parse_csv_lines(content)
    asset_ids = {a.ticker: a.id for a in store.fetch_all(Asset, user_id=user_id)}

    saver: Callable[[RecordStore, str, Mapping[str, Any]], Any]
    if table == "assets":
        saver = save_asset
    elif table == "catalog":
        saver = save_catalog_entry
    elif table == "positions":
        saver = save_position
    else:
        saver = save_income

    imported = 0
    skipped: List[Dict[str, Any]] = []
    for line_no, row in rows:
        payload: Dict[str, Any] = dict(row)
        if table in ("positions", "incomes"):
            asset_id = asset_ids.get(normalize_ticker(row.get("ticker")) or "")
            if asset_id is None:
                skipped.append({"line": line_no, "reason": f"unknown ticker {row.get('ticker')}"})
                continue
            payload["asset_id"] = asset_id
        try:
            saver(store, user_id, payload)
        except (RecordValidationError, RecordNotFound) as e:
            skipped.append({"line": line_no, "reason": str(e)})
            continue
        imported += 1

    if skipped:
        log.info("csv import %s: %d imported, %d skipped", table, imported, len(skipped))
    return {"table": table, "imported": imported, "skipped": skipped}
