from app.infra.models import Income, Position
from app.services import records
from app.services.csv_io import build_csv, export_table, import_table, parse_csv


def test_build_csv():
    rows = [{"ticker": "HGLG11", "name": None, "type": "brick"}]
    assert build_csv(rows, ("ticker", "name", "type")) == "ticker,name,type\nHGLG11,,brick"
    assert build_csv([]) == ""


def test_parse_csv_accepts_semicolons_and_bom():
    content = "\ufeffticker;month;amount\nHGLG11;2024-05;80,5\n;;\n"
    assert parse_csv(content) == [{"ticker": "HGLG11", "month": "2024-05", "amount": "80,5"}]
    assert parse_csv("") == []


def test_import_assets_then_positions(store):
    result = import_table(
        store,
        "u1",
        "assets",
        "ticker,name,type,sector\nhglg11,CSHG Log,tijolo,Logistics\nMXRF11,Maxi,papel,\nBAD11,,crypto,\n",
    )
    assert result["imported"] == 2
    assert result["skipped"] == [{"line": 4, "reason": "unknown asset type: crypto"}]

    result = import_table(
        store,
        "u1",
        "positions",
        "ticker,quantity,avg_price,start_date\nHGLG11,100,160.5,2023-01-10\nXPML11,10,100,\n",
    )
    assert result["imported"] == 1
    assert result["skipped"][0]["line"] == 3
    assert len(store.fetch_all(Position, user_id="u1")) == 1


def test_import_incomes_and_export(store):
    asset = records.save_asset(store, "u1", {"ticker": "HGLG11"})
    records.save_position(store, "u1", {"asset_id": asset.id, "quantity": 100, "avg_price": 160})

    result = import_table(
        store,
        "u1",
        "incomes",
        "ticker;month;amount;amount_per_share\nHGLG11;2024-04;;1,1\nHGLG11;2024-05;80;\n",
    )
    assert result == {"table": "incomes", "imported": 2, "skipped": []}
    assert len(store.fetch_all(Income, user_id="u1")) == 2

    exported = export_table(store, "u1", "incomes")
    lines = exported.splitlines()
    assert lines[0] == "ticker,month,amount,amount_per_share"
    assert lines[1].startswith("HGLG11,2024-04,110")
    ticker, month, amount, per_share = lines[2].split(",")
    assert (ticker, month, float(amount), per_share) == ("HGLG11", "2024-05", 80.0, "")


def test_export_is_scoped_to_user(store):
    records.save_asset(store, "u1", {"ticker": "HGLG11"})
    records.save_asset(store, "u2", {"ticker": "KNRI11"})
    exported = export_table(store, "u1", "assets")
    assert "HGLG11" in exported
    assert "KNRI11" not in exported


def test_skipped_line_numbers_count_blank_lines(store):
    result = import_table(
        store,
        "u1",
        "assets",
        "ticker,type\nHGLG11,tijolo\n\n,,\nBAD11,crypto\n",
    )
    assert result["imported"] == 1
    assert result["skipped"] == [{"line": 5, "reason": "unknown asset type: crypto"}]
