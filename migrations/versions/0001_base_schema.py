"""Base schema

Revision ID: 0001_base_schema
Revises: 
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_base_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _quote_columns() -> list:
    return [
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("price", sa.Numeric(18, 4), nullable=True),
        sa.Column("change", sa.Numeric(18, 4), nullable=True),
        sa.Column("change_percent", sa.Float(), nullable=True),
        sa.Column("volume", sa.BigInteger(), nullable=True),
        sa.Column("week_52_high", sa.Numeric(18, 4), nullable=True),
        sa.Column("week_52_low", sa.Numeric(18, 4), nullable=True),
        sa.Column("source", sa.String(length=32), nullable=False, server_default="brapi"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _asset_fk() -> sa.Column:
    return sa.Column(
        "asset_id",
        sa.String(length=36),
        sa.ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("ticker", sa.String(length=16), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=True),
        sa.Column("sector", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "ticker", name="uq_assets_user_ticker"),
    )
    op.create_index("ix_assets_user_id", "assets", ["user_id"])

    op.create_table(
        "positions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        _asset_fk(),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("avg_price", sa.Numeric(18, 4), nullable=False),
        sa.Column("costs", sa.Numeric(18, 2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "asset_id", name="uq_positions_user_asset"),
    )
    op.create_index("ix_positions_user_id", "positions", ["user_id"])
    op.create_index("ix_positions_asset_id", "positions", ["asset_id"])

    op.create_table(
        "incomes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        _asset_fk(),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("amount", sa.Numeric(18, 4), nullable=True),
        sa.Column("amount_per_share", sa.Numeric(18, 6), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "asset_id", "month", name="uq_incomes_user_asset_month"),
    )
    op.create_index("ix_incomes_user_id", "incomes", ["user_id"])
    op.create_index("ix_incomes_asset_id", "incomes", ["asset_id"])
    op.create_index("ix_incomes_month", "incomes", ["month"])

    op.create_table(
        "valuations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        _asset_fk(),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("price", sa.Numeric(18, 4), nullable=True),
        sa.Column("vp_per_share", sa.Numeric(18, 4), nullable=True),
        sa.Column("p_vp", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_valuations_user_id", "valuations", ["user_id"])
    op.create_index("ix_valuations_asset_id", "valuations", ["asset_id"])
    op.create_index("ix_valuations_date", "valuations", ["date"])

    op.create_table(
        "fundamentals",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        _asset_fk(),
        sa.Column("vacancy_physical", sa.Float(), nullable=True),
        sa.Column("vacancy_financial", sa.Float(), nullable=True),
        sa.Column("wault_years", sa.Float(), nullable=True),
        sa.Column("debt_ratio", sa.Float(), nullable=True),
        sa.Column("liquidity_daily", sa.Numeric(18, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "asset_id", name="uq_fundamentals_user_asset"),
    )
    op.create_index("ix_fundamentals_user_id", "fundamentals", ["user_id"])
    op.create_index("ix_fundamentals_asset_id", "fundamentals", ["asset_id"])

    op.create_table(
        "settings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("goal_amount", sa.Numeric(18, 2), nullable=False, server_default="100000"),
        sa.Column("alert_max_asset_pct", sa.Float(), nullable=False, server_default="0.2"),
        sa.Column("alert_income_drop_pct", sa.Float(), nullable=False, server_default="0.2"),
        sa.Column("alert_vacancy_pct", sa.Float(), nullable=False, server_default="0.15"),
        sa.Column("alert_asset_dy_drop_pct", sa.Float(), nullable=False, server_default="0.2"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "market_quotes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        _asset_fk(),
        *_quote_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "asset_id", "date", name="uq_market_quotes_user_asset_date"),
    )
    op.create_index("ix_market_quotes_user_id", "market_quotes", ["user_id"])
    op.create_index("ix_market_quotes_asset_id", "market_quotes", ["asset_id"])
    op.create_index("ix_market_quotes_date", "market_quotes", ["date"])

    op.create_table(
        "asset_catalog",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("ticker", sa.String(length=16), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=True),
        sa.Column("sector", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "ticker", name="uq_asset_catalog_user_ticker"),
    )
    op.create_index("ix_asset_catalog_user_id", "asset_catalog", ["user_id"])

    op.create_table(
        "market_catalog_quotes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "catalog_id",
            sa.String(length=36),
            sa.ForeignKey("asset_catalog.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_quote_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "catalog_id", "date", name="uq_market_catalog_quotes_user_catalog_date"
        ),
    )
    op.create_index("ix_market_catalog_quotes_user_id", "market_catalog_quotes", ["user_id"])
    op.create_index("ix_market_catalog_quotes_catalog_id", "market_catalog_quotes", ["catalog_id"])
    op.create_index("ix_market_catalog_quotes_date", "market_catalog_quotes", ["date"])


def downgrade() -> None:
    op.drop_index("ix_market_catalog_quotes_date", table_name="market_catalog_quotes")
    op.drop_index("ix_market_catalog_quotes_catalog_id", table_name="market_catalog_quotes")
    op.drop_index("ix_market_catalog_quotes_user_id", table_name="market_catalog_quotes")
    op.drop_table("market_catalog_quotes")

    op.drop_index("ix_asset_catalog_user_id", table_name="asset_catalog")
    op.drop_table("asset_catalog")

    op.drop_index("ix_market_quotes_date", table_name="market_quotes")
    op.drop_index("ix_market_quotes_asset_id", table_name="market_quotes")
    op.drop_index("ix_market_quotes_user_id", table_name="market_quotes")
    op.drop_table("market_quotes")

    op.drop_table("settings")

    op.drop_index("ix_fundamentals_asset_id", table_name="fundamentals")
    op.drop_index("ix_fundamentals_user_id", table_name="fundamentals")
    op.drop_table("fundamentals")

    op.drop_index("ix_valuations_date", table_name="valuations")
    op.drop_index("ix_valuations_asset_id", table_name="valuations")
    op.drop_index("ix_valuations_user_id", table_name="valuations")
    op.drop_table("valuations")

    op.drop_index("ix_incomes_month", table_name="incomes")
    op.drop_index("ix_incomes_asset_id", table_name="incomes")
    op.drop_index("ix_incomes_user_id", table_name="incomes")
    op.drop_table("incomes")

    op.drop_index("ix_positions_asset_id", table_name="positions")
    op.drop_index("ix_positions_user_id", table_name="positions")
    op.drop_table("positions")

    op.drop_index("ix_assets_user_id", table_name="assets")
    op.drop_table("assets")
