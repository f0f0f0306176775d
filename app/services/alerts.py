from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional

from app.services.aggregation import drop_ratio, group_by_month, prior_average, recent_month_keys
from app.services.parsing import parse_optional_number
from app.services.scoring import preferred_vacancy

Record = Mapping[str, Any]

INCOME_DROP_WINDOW = 3
MISSING_INCOME_MONTHS = 6
ASSET_DY_DROP_WINDOW = 3


@dataclass(frozen=True)
class AlertThresholds:
    max_asset_pct: float = 0.2
    income_drop_pct: float = 0.2
    vacancy_pct: float = 0.15
    asset_dy_drop_pct: float = 0.2

    @classmethod
    def from_settings(cls, settings: Optional[Record]) -> "AlertThresholds":
        """Read alert_* fields from a settings record; missing ones keep defaults."""
        if not settings:
            return cls()
        defaults = cls()

        def pick(field: str, default: float) -> float:
            value = parse_optional_number(settings.get(field))
            return default if value is None else value

        return cls(
            max_asset_pct=pick("alert_max_asset_pct", defaults.max_asset_pct),
            income_drop_pct=pick("alert_income_drop_pct", defaults.income_drop_pct),
            vacancy_pct=pick("alert_vacancy_pct", defaults.vacancy_pct),
            asset_dy_drop_pct=pick("alert_asset_dy_drop_pct", defaults.asset_dy_drop_pct),
        )


def _pct(value: float) -> str:
    return f"{value * 100:.2f}%"


def missing_income_months(
    incomes: Iterable[Record],
    reference: Optional[date] = None,
    months: int = MISSING_INCOME_MONTHS,
) -> List[str]:
    """Calendar months in the trailing window with no income record, newest first."""
    grouped = group_by_month(incomes)
    window = recent_month_keys(months, reference)
    return [m for m in reversed(window) if m not in grouped]


def vacancy_alerts(
    assets: Iterable[Record],
    fundamentals_by_asset: Mapping[str, Record],
    threshold: float,
) -> List[str]:
    out: List[str] = []
    for asset in assets:
        fund = fundamentals_by_asset.get(str(asset.get("id"))) or {}
        vacancy = preferred_vacancy(
            parse_optional_number(fund.get("vacancy_financial")),
            parse_optional_number(fund.get("vacancy_physical")),
        )
        if vacancy is not None and vacancy >= threshold:
            out.append(f"{asset.get('ticker')}: vacancy {_pct(vacancy)}")
    return out


def asset_dy_drop_alerts(
    assets: Iterable[Record],
    income_by_asset_month: Mapping[str, Mapping[str, float]],
    threshold: float,
) -> List[str]:
    out: List[str] = []
    for asset in assets:
        monthly = income_by_asset_month.get(str(asset.get("id"))) or {}
        if not prior_average(monthly, ASSET_DY_DROP_WINDOW):
            continue
        drop = drop_ratio(monthly, ASSET_DY_DROP_WINDOW)
        if drop >= threshold:
            out.append(f"{asset.get('ticker')}: DY drop {_pct(drop)}")
    return out


def evaluate_alerts(
    *,
    assets: Iterable[Record],
    incomes: Iterable[Record],
    concentration: Mapping[str, float],
    fundamentals_by_asset: Mapping[str, Record],
    income_by_asset_month: Mapping[str, Mapping[str, float]],
    thresholds: Optional[AlertThresholds] = None,
    reference: Optional[date] = None,
) -> List[str]:
    """
    Portfolio alerts in a fixed order:
      1. single-asset concentration
      2. 3-month income drop
      3. missing recent income
      4. per-asset vacancy
      5. per-asset DY drop
    """
    th = thresholds or AlertThresholds()
    assets = list(assets)
    incomes = list(incomes)
    alerts: List[str] = []

    max_asset_pct = max(concentration.values(), default=0.0)
    if max_asset_pct > th.max_asset_pct:
        alerts.append(f"High concentration: {_pct(max_asset_pct)} in a single asset.")

    income_drop = drop_ratio(group_by_month(incomes), INCOME_DROP_WINDOW)
    if income_drop > th.income_drop_pct:
        alerts.append(f"Income drop: {_pct(income_drop)} vs 3-month average.")

    if not incomes or missing_income_months(incomes, reference):
        alerts.append("Recent months without recorded income. Check for missing data.")

    alerts.extend(vacancy_alerts(assets, fundamentals_by_asset, th.vacancy_pct))
    alerts.extend(asset_dy_drop_alerts(assets, income_by_asset_month, th.asset_dy_drop_pct))
    return alerts
