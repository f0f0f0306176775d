from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from app.infra.models import (
    Asset,
    AssetCatalog,
    Fundamentals,
    Income,
    MarketCatalogQuote,
    MarketQuote,
    Position,
    UserSettings,
    Valuation,
)
from app.services.aggregation import (
    average_monthly,
    group_by_asset_and_month,
    group_by_month,
    latest_quote_by,
    latest_valuation_by_asset,
    recent_month_keys,
    trailing_twelve_month_yield,
    values_for_months,
)
from app.services.alerts import AlertThresholds, evaluate_alerts, missing_income_months
from app.services.metrics import (
    concentration_by_asset,
    concentration_by_type,
    goal_progress,
    invested_value,
    market_value,
    position_52,
    position_invested_value,
    unrealized_delta,
)
from app.services.parsing import parse_optional_number
from app.services.records import settings_with_defaults
from app.services.scoring import (
    OPPORTUNITY_THRESHOLD,
    RISK_THRESHOLD,
    classify_signal,
    composite_score,
    income_score,
    opportunity_score,
    preferred_vacancy,
    risk_score,
    stability_score,
)
from app.services.store import RecordStore

Record = Mapping[str, Any]

STABILITY_WINDOW_MONTHS = 6
TOP_CONCENTRATION = 6
TOP_MOVERS = 5

ANALYSIS_FILTERS = ("all", "opportunity", "risk", "income", "stable", "vacancy", "no_data")


@dataclass
class PortfolioData:
    assets: List[Dict[str, Any]] = field(default_factory=list)
    positions: List[Dict[str, Any]] = field(default_factory=list)
    incomes: List[Dict[str, Any]] = field(default_factory=list)
    valuations: List[Dict[str, Any]] = field(default_factory=list)
    quotes: List[Dict[str, Any]] = field(default_factory=list)
    fundamentals: List[Dict[str, Any]] = field(default_factory=list)
    settings: Optional[Dict[str, Any]] = None
    catalog: List[Dict[str, Any]] = field(default_factory=list)
    catalog_quotes: List[Dict[str, Any]] = field(default_factory=list)


def load_portfolio(store: RecordStore, user_id: str) -> PortfolioData:
    settings_rows = store.fetch_records(UserSettings, user_id=user_id)
    return PortfolioData(
        assets=sorted(store.fetch_records(Asset, user_id=user_id), key=lambda a: a["ticker"]),
        positions=store.fetch_records(Position, user_id=user_id),
        incomes=store.fetch_records(Income, user_id=user_id),
        valuations=store.fetch_records(Valuation, user_id=user_id),
        quotes=store.fetch_records(MarketQuote, user_id=user_id),
        fundamentals=store.fetch_records(Fundamentals, user_id=user_id),
        settings=settings_rows[0] if settings_rows else None,
        catalog=sorted(store.fetch_records(AssetCatalog, user_id=user_id), key=lambda a: a["ticker"]),
        catalog_quotes=store.fetch_records(MarketCatalogQuote, user_id=user_id),
    )


def _by_asset(records: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {str(r["asset_id"]): r for r in records}


def _iso(d: Any) -> Optional[str]:
    return d.isoformat() if isinstance(d, date) else d


def build_asset_rows(data: PortfolioData, reference: Optional[date] = None) -> List[Dict[str, Any]]:
    """Per-asset figures and scores shared by the dashboard and the analysis screen."""
    positions = _by_asset(data.positions)
    fundamentals = _by_asset(data.fundamentals)
    latest_quotes = latest_quote_by(data.quotes)
    latest_valuations = latest_valuation_by_asset(data.valuations)
    income_by_asset = group_by_asset_and_month(data.incomes)
    months = group_by_month(data.incomes)
    last_month = max(months) if months else None
    window = recent_month_keys(STABILITY_WINDOW_MONTHS, reference)

    rows: List[Dict[str, Any]] = []
    for asset in data.assets:
        asset_id = str(asset["id"])
        pos = positions.get(asset_id)
        quote = latest_quotes.get(asset_id)
        valuation = latest_valuations.get(asset_id)
        fund = fundamentals.get(asset_id) or {}
        monthly = income_by_asset.get(asset_id, {})

        invested = position_invested_value(pos)
        mv = market_value(pos, quote)
        delta, _ = unrealized_delta(mv, invested)
        price_gap = delta / invested if delta is not None and invested else None

        dy12m = trailing_twelve_month_yield(monthly, invested)
        month_income = monthly.get(last_month, 0.0) if last_month else 0.0
        p52 = position_52(quote)

        vacancy_fin = parse_optional_number(fund.get("vacancy_financial"))
        vacancy_phy = parse_optional_number(fund.get("vacancy_physical"))
        liquidity = parse_optional_number(fund.get("liquidity_daily"))
        if liquidity is None and quote:
            liquidity = parse_optional_number(quote.get("volume"))

        inc = income_score(dy12m)
        stab = stability_score(values_for_months(monthly, window))
        risk = risk_score(
            vacancy_financial=vacancy_fin,
            vacancy_physical=vacancy_phy,
            debt_ratio=parse_optional_number(fund.get("debt_ratio")),
            liquidity_daily=liquidity,
        )
        total = composite_score(inc, stab, risk)
        opp = opportunity_score(
            dy12m=dy12m,
            p_vp=parse_optional_number((valuation or {}).get("p_vp")),
            position52=p52,
        )

        rows.append(
            {
                "asset_id": asset_id,
                "ticker": asset.get("ticker"),
                "name": asset.get("name"),
                "type": asset.get("type"),
                "status": asset.get("status"),
                "invested": invested,
                "market_price": parse_optional_number(quote.get("price")) if quote else None,
                "market_value": mv,
                "price_gap": price_gap,
                "change_percent": parse_optional_number(quote.get("change_percent")) if quote else None,
                "quote_date": _iso(quote.get("date")) if quote else None,
                "position_52w": p52,
                "p_vp": parse_optional_number(valuation.get("p_vp")) if valuation else None,
                "vacancy": preferred_vacancy(vacancy_fin, vacancy_phy),
                "dy_monthly": month_income / invested if invested else 0.0,
                "dy_12m": dy12m,
                "income_score": inc,
                "stability_score": stab,
                "risk_score": risk,
                "composite_score": total,
                "signal": classify_signal(total),
                "opportunity_score": opp,
                "opportunity_signal": classify_signal(opp),
            }
        )
    return rows


def _last_quote_date(quotes: List[Dict[str, Any]], group_field: str) -> Optional[str]:
    dates = [_iso(q.get("date")) for q in latest_quote_by(quotes, group_field).values()]
    dates = [d for d in dates if d]
    return max(dates) if dates else None


def build_dashboard(data: PortfolioData, reference: Optional[date] = None) -> Dict[str, Any]:
    settings = settings_with_defaults(data.settings)
    assets_by_id = {str(a["id"]): a for a in data.assets}
    rows = build_asset_rows(data, reference)

    invested = invested_value(data.positions)
    grouped = group_by_month(data.incomes)
    market_total = sum(r["market_value"] or 0.0 for r in rows)
    market_delta = market_total - invested

    concentration = concentration_by_asset(data.positions)
    top_concentration = sorted(
        (
            {"ticker": (assets_by_id.get(k) or {}).get("ticker") or "asset", "value": v}
            for k, v in concentration.items()
        ),
        key=lambda x: x["value"],
        reverse=True,
    )[:TOP_CONCENTRATION]

    movers = [
        {"ticker": r["ticker"], "change_percent": r["change_percent"], "price": r["market_price"]}
        for r in rows
        if r["change_percent"] is not None
    ]

    alerts = evaluate_alerts(
        assets=data.assets,
        incomes=data.incomes,
        concentration=concentration,
        fundamentals_by_asset=_by_asset(data.fundamentals),
        income_by_asset_month=group_by_asset_and_month(data.incomes),
        thresholds=AlertThresholds.from_settings(settings),
        reference=reference,
    )

    return {
        "invested_value": invested,
        "market_value": market_total,
        "market_delta": market_delta,
        "market_delta_pct": market_delta / invested if invested else 0.0,
        "last_month_income": grouped[max(grouped)] if grouped else 0.0,
        "avg_income_6m": average_monthly(grouped, 6),
        "avg_income_12m": average_monthly(grouped, 12),
        "goal_amount": settings["goal_amount"],
        "goal_progress": goal_progress(invested, settings["goal_amount"]),
        "income_by_month": [{"month": m, "value": v} for m, v in grouped.items()],
        "concentration": top_concentration,
        "concentration_by_type": concentration_by_type(data.positions, assets_by_id),
        "top_gainers": sorted(movers, key=lambda m: m["change_percent"], reverse=True)[:TOP_MOVERS],
        "top_losers": sorted(movers, key=lambda m: m["change_percent"])[:TOP_MOVERS],
        "last_quote_date": _last_quote_date(data.quotes, "asset_id"),
        "missing_income_months": missing_income_months(data.incomes, reference),
        "alerts": alerts,
        "assets": rows,
    }


def _matches(row: Record, flt: str, vacancy_threshold: float) -> bool:
    total = row["composite_score"]
    if flt == "opportunity":
        return total is not None and total >= OPPORTUNITY_THRESHOLD
    if flt == "risk":
        return total is not None and total <= RISK_THRESHOLD
    if flt == "income":
        return row["income_score"] is not None and row["income_score"] >= OPPORTUNITY_THRESHOLD
    if flt == "stable":
        return row["stability_score"] is not None and row["stability_score"] >= OPPORTUNITY_THRESHOLD
    if flt == "vacancy":
        return row["vacancy"] is not None and row["vacancy"] >= vacancy_threshold
    if flt == "no_data":
        return total is None
    return True


def build_market_rows(data: PortfolioData) -> List[Dict[str, Any]]:
    """Catalog tickers with their latest quote and 52-week position."""
    latest = latest_quote_by(data.catalog_quotes, "catalog_id")
    out: List[Dict[str, Any]] = []
    for item in data.catalog:
        quote = latest.get(str(item["id"]))
        out.append(
            {
                "catalog_id": str(item["id"]),
                "ticker": item.get("ticker"),
                "name": item.get("name"),
                "type": item.get("type"),
                "sector": item.get("sector"),
                "price": parse_optional_number(quote.get("price")) if quote else None,
                "change_percent": parse_optional_number(quote.get("change_percent")) if quote else None,
                "volume": parse_optional_number(quote.get("volume")) if quote else None,
                "quote_date": _iso(quote.get("date")) if quote else None,
                "position_52w": position_52(quote),
            }
        )
    return out


def build_analysis(
    data: PortfolioData,
    reference: Optional[date] = None,
    flt: str = "all",
) -> Dict[str, Any]:
    if flt not in ANALYSIS_FILTERS:
        raise ValueError(f"unknown filter: {flt}")
    settings = settings_with_defaults(data.settings)
    rows = build_asset_rows(data, reference)
    return {
        "filter": flt,
        "last_quote_date": _last_quote_date(data.quotes, "asset_id"),
        "last_catalog_quote_date": _last_quote_date(data.catalog_quotes, "catalog_id"),
        "assets": [r for r in rows if _matches(r, flt, settings["alert_vacancy_pct"])],
        "market": build_market_rows(data),
    }
