from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from app.services.parsing import number_or_zero, parse_optional_number

Record = Mapping[str, Any]

DEFAULT_TYPE_BUCKET = "other"


def position_invested_value(position: Optional[Record]) -> float:
    """quantity * avg_price + costs (costs default to 0)."""
    if not position:
        return 0.0
    return (
        number_or_zero(position.get("quantity")) * number_or_zero(position.get("avg_price"))
        + number_or_zero(position.get("costs"))
    )


def invested_value(positions: Iterable[Record]) -> float:
    return sum(position_invested_value(p) for p in positions)


def concentration_by_asset(positions: Iterable[Record]) -> Dict[str, float]:
    """Share of total invested value per asset_id. Empty when nothing is invested."""
    positions = list(positions)
    total = invested_value(positions)
    if not total:
        return {}
    out: Dict[str, float] = {}
    for p in positions:
        asset_id = str(p.get("asset_id"))
        out[asset_id] = out.get(asset_id, 0.0) + position_invested_value(p) / total
    return out


def concentration_by_type(
    positions: Iterable[Record],
    assets_by_id: Mapping[str, Record],
) -> Dict[str, float]:
    positions = list(positions)
    total = invested_value(positions)
    if not total:
        return {}
    out: Dict[str, float] = {}
    for p in positions:
        asset = assets_by_id.get(str(p.get("asset_id"))) or {}
        bucket = asset.get("type") or DEFAULT_TYPE_BUCKET
        out[bucket] = out.get(bucket, 0.0) + position_invested_value(p) / total
    return out


def position_52(quote: Optional[Record]) -> Optional[float]:
    """
    Where the price sits inside the 52-week range (0 = low, 1 = high).
    None unless price and both bounds are known and the bounds differ.
    """
    if not quote:
        return None
    price = parse_optional_number(quote.get("price"))
    high = parse_optional_number(quote.get("week_52_high"))
    low = parse_optional_number(quote.get("week_52_low"))
    if price is None or high is None or low is None or high == low:
        return None
    return (price - low) / (high - low)


def market_value(position: Optional[Record], quote: Optional[Record]) -> Optional[float]:
    if not position or not quote:
        return None
    price = parse_optional_number(quote.get("price"))
    if not price:
        return None
    return number_or_zero(position.get("quantity")) * price


def unrealized_delta(market: Optional[float], invested: float) -> Tuple[Optional[float], float]:
    """(market - invested, that delta / invested); pct is 0 when invested is 0."""
    if market is None:
        return None, 0.0
    delta = market - invested
    return delta, (delta / invested if invested else 0.0)


def goal_progress(invested: float, goal_amount: Optional[float]) -> float:
    if not goal_amount:
        return 0.0
    return invested / goal_amount
