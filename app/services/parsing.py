from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")

ASSET_TYPES = ("brick", "paper", "hybrid", "other")
ASSET_STATUSES = ("ok", "attention", "problem")

# CSV exports of the Portuguese UI use these labels
_TYPE_ALIASES = {
    "tijolo": "brick",
    "papel": "paper",
    "hibrido": "hybrid",
    "híbrido": "hybrid",
    "outros": "other",
}


def parse_optional_number(value: Any) -> Optional[float]:
    """
    Total conversion of form / CSV / DB values to float.

    None, blanks, NaN and anything unparseable map to None. Strings may use a
    decimal comma ("12,5") when no dot is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        out = float(value)
        return None if math.isnan(out) or math.isinf(out) else out
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None
    if "," in s and "." not in s:
        s = s.replace(",", ".")
    try:
        out = float(Decimal(s))
    except (InvalidOperation, ValueError):
        return None
    return None if math.isnan(out) or math.isinf(out) else out


def number_or_zero(value: Any) -> float:
    n = parse_optional_number(value)
    return 0.0 if n is None else n


def parse_month_key(value: Any) -> Optional[str]:
    """Normalize YYYY-MM (or a date / ISO date string) to a YYYY-MM key."""
    if isinstance(value, (date, datetime)):
        return f"{value.year:04d}-{value.month:02d}"
    if not isinstance(value, str):
        return None
    s = value.strip()[:7]
    m = _MONTH_RE.match(s)
    if not m:
        return None
    if not 1 <= int(m.group(2)) <= 12:
        return None
    return s


def parse_optional_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def normalize_asset_type(value: Any) -> Optional[str]:
    s = parse_optional_text(value)
    if s is None:
        return None
    s = s.lower()
    s = _TYPE_ALIASES.get(s, s)
    return s if s in ASSET_TYPES else None


def normalize_ticker(value: Any) -> Optional[str]:
    s = parse_optional_text(value)
    return s.upper() if s else None
