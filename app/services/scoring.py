"""
Normalized 0-100 indicators for a single fund.

Every scorer returns None when it has nothing to work with; callers must keep
"no score" apart from a score of 0.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

# 12% a year is treated as full marks for distributions
TARGET_YIELD = 0.12

LIQUIDITY_FULL_SCORE = 1_000_000.0
PVP_ZERO_SCORE_EXCESS = 0.5

OPPORTUNITY_THRESHOLD = 70
RISK_THRESHOLD = 40

SIGNAL_OPPORTUNITY = "opportunity"
SIGNAL_NEUTRAL = "neutral"
SIGNAL_RISK = "risk"
SIGNAL_NO_DATA = "no data"

RISK_WEIGHTS = {"vacancy": 0.4, "debt": 0.3, "liquidity": 0.3}
OPPORTUNITY_WEIGHTS = {"yield": 0.4, "p_vp": 0.3, "position52": 0.3}
COMPOSITE_WEIGHTS = {"income": 0.4, "stability": 0.3, "risk": 0.3}


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def round_score(value: float) -> int:
    """Round half up; scores are never negative."""
    return int(math.floor(value + 0.5))


def weighted_score(components: Sequence[Tuple[Optional[float], float]]) -> Optional[int]:
    """
    Weighted mean of (sub_score, weight) pairs on a 0-1 scale, scaled to 0-100.

    Pairs whose sub_score is None are dropped and the remaining weights are
    renormalized. None when nothing is left.
    """
    present = [(v, w) for v, w in components if v is not None]
    weight_sum = sum(w for _, w in present)
    if not present or weight_sum <= 0:
        return None
    total = sum(v * w for v, w in present)
    return round_score(total / weight_sum * 100)


def income_score(dy12m: Optional[float]) -> Optional[int]:
    if dy12m is None:
        return None
    return round_score(clamp(dy12m / TARGET_YIELD) * 100)


def stability_score(values: Iterable[float]) -> Optional[int]:
    """
    1 - coefficient of variation of a fixed-width monthly series.
    Months without income must be passed as 0.
    """
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return None
    mean = float(arr.mean())
    if mean == 0:
        return 0
    cv = float(arr.std()) / mean  # population std (ddof=0)
    return round_score(clamp(1.0 - cv) * 100)


def preferred_vacancy(
    vacancy_financial: Optional[float],
    vacancy_physical: Optional[float],
) -> Optional[float]:
    return vacancy_financial if vacancy_financial is not None else vacancy_physical


def risk_score(
    vacancy_financial: Optional[float] = None,
    vacancy_physical: Optional[float] = None,
    debt_ratio: Optional[float] = None,
    liquidity_daily: Optional[float] = None,
) -> Optional[int]:
    """
    Fundamentals blend (higher = safer). `liquidity_daily` is BRL traded per
    day; callers fall back to quote volume when fundamentals have none.
    """
    vacancy = preferred_vacancy(vacancy_financial, vacancy_physical)
    return weighted_score(
        [
            (None if vacancy is None else max(0.0, 1.0 - vacancy), RISK_WEIGHTS["vacancy"]),
            (None if debt_ratio is None else max(0.0, 1.0 - debt_ratio), RISK_WEIGHTS["debt"]),
            (
                None if liquidity_daily is None else clamp(liquidity_daily / LIQUIDITY_FULL_SCORE),
                RISK_WEIGHTS["liquidity"],
            ),
        ]
    )


def pvp_sub_score(p_vp: Optional[float]) -> Optional[float]:
    # 0 means "not informed"
    if not p_vp:
        return None
    if p_vp <= 1:
        return 1.0
    return max(0.0, 1.0 - (p_vp - 1.0) / PVP_ZERO_SCORE_EXCESS)


def opportunity_score(
    dy12m: Optional[float] = None,
    p_vp: Optional[float] = None,
    position52: Optional[float] = None,
) -> Optional[int]:
    """Yield, price-to-book and 52-week position; near the 52w low scores higher."""
    return weighted_score(
        [
            (None if dy12m is None else clamp(dy12m / TARGET_YIELD), OPPORTUNITY_WEIGHTS["yield"]),
            (pvp_sub_score(p_vp), OPPORTUNITY_WEIGHTS["p_vp"]),
            (None if position52 is None else clamp(1.0 - position52), OPPORTUNITY_WEIGHTS["position52"]),
        ]
    )


def composite_score(
    income: Optional[int] = None,
    stability: Optional[int] = None,
    risk: Optional[int] = None,
) -> Optional[int]:
    return weighted_score(
        [
            (None if income is None else income / 100.0, COMPOSITE_WEIGHTS["income"]),
            (None if stability is None else stability / 100.0, COMPOSITE_WEIGHTS["stability"]),
            (None if risk is None else risk / 100.0, COMPOSITE_WEIGHTS["risk"]),
        ]
    )


def classify_signal(score: Optional[int]) -> str:
    if score is None:
        return SIGNAL_NO_DATA
    if score >= OPPORTUNITY_THRESHOLD:
        return SIGNAL_OPPORTUNITY
    if score <= RISK_THRESHOLD:
        return SIGNAL_RISK
    return SIGNAL_NEUTRAL
