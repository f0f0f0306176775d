from datetime import date, datetime

import pytest

from app.services.aggregation import (
    average_monthly,
    drop_ratio,
    group_by_asset,
    group_by_asset_and_month,
    group_by_month,
    latest_by,
    prior_average,
    recent_month_keys,
    trailing_twelve_month_yield,
    values_for_months,
)


INCOMES = [
    {"asset_id": "a1", "month": "2024-01", "amount": 10},
    {"asset_id": "a2", "month": "2024-01", "amount": "5,5"},
    {"asset_id": "a1", "month": "2024-02", "amount": 12},
    {"asset_id": "a2", "month": "2024-03", "amount": None},
    {"asset_id": "a1", "month": "bad", "amount": 99},
]


def test_group_by_month_sums_and_skips_bad_months():
    grouped = group_by_month(INCOMES)
    assert grouped == {"2024-01": 15.5, "2024-02": 12.0, "2024-03": 0.0}
    assert list(grouped) == ["2024-01", "2024-02", "2024-03"]


def test_grouping_ignores_input_order():
    assert group_by_month(INCOMES) == group_by_month(list(reversed(INCOMES)))
    assert group_by_asset_and_month(INCOMES) == group_by_asset_and_month(list(reversed(INCOMES)))


def test_group_by_asset_and_month():
    grouped = group_by_asset_and_month(INCOMES)
    assert grouped["a1"] == {"2024-01": 10.0, "2024-02": 12.0}
    assert grouped["a2"] == {"2024-01": 5.5, "2024-03": 0.0}
    assert group_by_asset(INCOMES) == {"a1": 22.0, "a2": 5.5}


def test_average_monthly_uses_months_with_data():
    monthly = {"2024-01": 10.0, "2024-02": 20.0, "2024-03": 30.0}
    assert average_monthly(monthly, 2) == 25.0
    assert average_monthly(monthly, 6) == 20.0
    assert average_monthly({}, 6) == 0.0


def test_drop_ratio():
    monthly = {"2024-01": 100.0, "2024-02": 100.0, "2024-03": 100.0, "2024-04": 50.0}
    assert drop_ratio(monthly, 3) == pytest.approx(0.5)


def test_drop_ratio_zero_cases():
    # not enough history
    assert drop_ratio({"2024-01": 100.0, "2024-02": 100.0, "2024-03": 50.0}, 3) == 0.0
    # prior average is zero
    zeros = {"2024-01": 0.0, "2024-02": 0.0, "2024-03": 0.0, "2024-04": 10.0}
    assert drop_ratio(zeros, 3) == 0.0


def test_trailing_twelve_month_yield():
    monthly = {f"2023-{m:02d}": 10.0 for m in range(1, 13)}
    monthly["2024-01"] = 10.0
    assert trailing_twelve_month_yield(monthly, 1000.0) == pytest.approx(0.12)
    assert trailing_twelve_month_yield(monthly, 0.0) == 0.0


def test_recent_month_keys_crosses_year():
    assert recent_month_keys(3, date(2024, 2, 15)) == ["2023-12", "2024-01", "2024-02"]
    assert recent_month_keys(0, date(2024, 2, 15)) == []


def test_values_for_months_pads_missing_with_zero():
    monthly = {"2024-01": 10.0, "2024-03": 30.0}
    assert values_for_months(monthly, ["2024-01", "2024-02", "2024-03"]) == [10.0, 0.0, 30.0]


def test_latest_by_picks_greatest_date():
    rows = [
        {"asset_id": "a1", "date": date(2024, 5, 1), "price": 1},
        {"asset_id": "a1", "date": date(2024, 5, 3), "price": 3},
        {"asset_id": "a1", "date": date(2024, 5, 2), "price": 2},
        {"asset_id": "a2", "date": date(2024, 1, 1), "price": 9},
    ]
    latest = latest_by(rows, "asset_id")
    assert latest["a1"]["price"] == 3
    assert latest["a2"]["price"] == 9


def test_latest_by_tie_breaks_on_created_at_then_order():
    d = date(2024, 5, 1)
    rows = [
        {"asset_id": "a1", "date": d, "created_at": datetime(2024, 5, 2, 10), "price": "late"},
        {"asset_id": "a1", "date": d, "created_at": datetime(2024, 5, 1, 10), "price": "early"},
    ]
    assert latest_by(rows, "asset_id")["a1"]["price"] == "late"

    same = [
        {"asset_id": "a1", "date": d, "price": "first"},
        {"asset_id": "a1", "date": d, "price": "second"},
    ]
    assert latest_by(same, "asset_id")["a1"]["price"] == "second"


def test_latest_by_missing_date_falls_back_to_created_at():
    rows = [
        {"asset_id": "a1", "date": date(2024, 5, 1), "price": 1},
        {"asset_id": "a1", "date": None, "created_at": datetime(2024, 6, 1, 9), "price": 2},
    ]
    assert latest_by(rows, "asset_id")["a1"]["price"] == 2


def test_prior_average():
    monthly = {"2024-01": 90.0, "2024-02": 100.0, "2024-03": 110.0, "2024-04": 50.0}
    assert prior_average(monthly, 3) == pytest.approx(100.0)
    assert prior_average(monthly, 4) is None
