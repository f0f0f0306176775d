from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from app.services.parsing import number_or_zero, parse_month_key

Record = Mapping[str, Any]


# ---------- Grouping ----------


def _income_items(incomes: Iterable[Record]) -> Iterator[Tuple[str, str, float]]:
    for inc in incomes:
        month = parse_month_key(inc.get("month"))
        if month is None:
            continue
        yield str(inc.get("asset_id") or ""), month, number_or_zero(inc.get("amount"))


def group_by_month(incomes: Iterable[Record]) -> Dict[str, float]:
    """Sum income amounts per YYYY-MM. Records without an amount count as 0."""
    out: Dict[str, float] = {}
    for _, month, amount in _income_items(incomes):
        out[month] = out.get(month, 0.0) + amount
    return dict(sorted(out.items()))


def group_by_asset_and_month(incomes: Iterable[Record]) -> Dict[str, Dict[str, float]]:
    out: Dict[str, Dict[str, float]] = {}
    for asset_id, month, amount in _income_items(incomes):
        by_month = out.setdefault(asset_id, {})
        by_month[month] = by_month.get(month, 0.0) + amount
    return {k: dict(sorted(v.items())) for k, v in out.items()}


def group_by_asset(incomes: Iterable[Record]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for asset_id, _, amount in _income_items(incomes):
        out[asset_id] = out.get(asset_id, 0.0) + amount
    return out


def monthly_income_total(incomes: Iterable[Record], month: str) -> float:
    return group_by_month(incomes).get(month, 0.0)


# ---------- Windows over months with data ----------


def average_monthly(monthly: Mapping[str, float], window: int) -> float:
    """
    Mean of the last `window` months present in `monthly`.
    Months without data are not padded, so fewer values may be averaged.
    """
    ordered = sorted(monthly)
    if not ordered or window <= 0:
        return 0.0
    tail = ordered[-window:]
    return sum(monthly[m] for m in tail) / len(tail)


def average_income(incomes: Iterable[Record], window: int) -> float:
    return average_monthly(group_by_month(incomes), window)


def trailing_twelve_month_yield(monthly: Mapping[str, float], invested: float) -> float:
    """Income of the last (up to) 12 months with data divided by invested value."""
    if not invested:
        return 0.0
    last12 = sorted(monthly)[-12:]
    return sum(monthly[m] for m in last12) / invested


def prior_average(monthly: Mapping[str, float], window: int) -> Optional[float]:
    """Mean of the `window` months before the latest; None without window + 1 months."""
    ordered = sorted(monthly)
    if window <= 0 or len(ordered) < window + 1:
        return None
    return sum(monthly[m] for m in ordered[-(window + 1):-1]) / window


def drop_ratio(monthly: Mapping[str, float], window: int) -> float:
    """
    (avg of the `window` months before the latest - latest) / that average.

    0 when fewer than window + 1 months exist or the prior average is 0.
    """
    avg_prev = prior_average(monthly, window)
    if not avg_prev:
        return 0.0
    latest = monthly[max(monthly)]
    return (avg_prev - latest) / avg_prev


def income_drop_ratio(incomes: Iterable[Record], window: int) -> float:
    return drop_ratio(group_by_month(incomes), window)


# ---------- Calendar windows ----------


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def iter_month_keys_back(reference: date) -> Iterator[str]:
    """Yield YYYY-MM keys from the reference month backwards, without end."""
    year, month = reference.year, reference.month
    while True:
        yield f"{year:04d}-{month:02d}"
        month -= 1
        if month == 0:
            year -= 1
            month = 12


def recent_month_keys(n: int, reference: Optional[date] = None) -> List[str]:
    """The n calendar months ending at the reference month, oldest first."""
    if n <= 0:
        return []
    ref = reference or date.today()
    keys: List[str] = []
    for key in iter_month_keys_back(ref):
        keys.append(key)
        if len(keys) == n:
            break
    return keys[::-1]


def values_for_months(monthly: Mapping[str, float], months: Iterable[str]) -> List[float]:
    """Fixed-width series over `months`; months without data are 0."""
    return [float(monthly.get(m, 0.0)) for m in months]


# ---------- Latest-by-date selection ----------


def _iso(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _recency_key(record: Record, date_field: str) -> Tuple[str, str]:
    created = _iso(record.get("created_at"))
    return (_iso(record.get(date_field)) or created, created)


def latest_by(
    records: Iterable[Record],
    group_field: str,
    date_field: str = "date",
) -> Dict[str, Record]:
    """
    Keep, per `group_field` value, the record with the greatest date.

    A missing date falls back to created_at; equal dates are broken by
    created_at, then by input order (later wins).
    """
    out: Dict[str, Record] = {}
    for rec in records:
        key = rec.get(group_field)
        if key is None:
            continue
        key = str(key)
        current = out.get(key)
        if current is None or _recency_key(rec, date_field) >= _recency_key(current, date_field):
            out[key] = rec
    return out


def latest_valuation_by_asset(valuations: Iterable[Record]) -> Dict[str, Record]:
    return latest_by(valuations, "asset_id")


def latest_quote_by(quotes: Iterable[Record], group_field: str = "asset_id") -> Dict[str, Record]:
    return latest_by(quotes, group_field)
