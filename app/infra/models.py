import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Holdings ----------


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)

    ticker = Column(String(16), nullable=False)  # upper-case, e.g. "HGLG11"
    name = Column(Text, nullable=True)
    type = Column(String(16), nullable=True)  # "brick" | "paper" | "hybrid" | "other"
    sector = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(16), nullable=True)  # "ok" | "attention" | "problem"

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    position = relationship(
        "Position", back_populates="asset", uselist=False, cascade="all, delete-orphan"
    )
    incomes = relationship("Income", back_populates="asset", cascade="all, delete-orphan")
    valuations = relationship("Valuation", back_populates="asset", cascade="all, delete-orphan")
    quotes = relationship("MarketQuote", back_populates="asset", cascade="all, delete-orphan")
    fundamentals = relationship(
        "Fundamentals", back_populates="asset", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "ticker", name="uq_assets_user_ticker"),
    )


class Position(Base):
    __tablename__ = "positions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    asset_id = Column(
        String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True
    )

    quantity = Column(Numeric(18, 4, asdecimal=False), nullable=False)
    avg_price = Column(Numeric(18, 4, asdecimal=False), nullable=False)
    costs = Column(Numeric(18, 2, asdecimal=False), nullable=True)  # brokerage fees, taxes
    start_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    asset = relationship("Asset", back_populates="position")

    __table_args__ = (
        UniqueConstraint("user_id", "asset_id", name="uq_positions_user_asset"),
    )


class Income(Base):
    """
    Monthly distribution received for one asset. `month` is a YYYY-MM key,
    which sorts chronologically as a string.
    """
    __tablename__ = "incomes"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    asset_id = Column(
        String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True
    )

    month = Column(String(7), nullable=False, index=True)
    amount = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    amount_per_share = Column(Numeric(18, 6, asdecimal=False), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    asset = relationship("Asset", back_populates="incomes")

    __table_args__ = (
        UniqueConstraint("user_id", "asset_id", "month", name="uq_incomes_user_asset_month"),
    )


class Valuation(Base):
    """
    Manual or fetched price / book value snapshot.
    No unique key on (asset_id, date): the quote sync checks for existing
    rows before appending.
    """
    __tablename__ = "valuations"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    asset_id = Column(
        String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True
    )

    date = Column(Date, nullable=True, index=True)
    price = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    vp_per_share = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    p_vp = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    asset = relationship("Asset", back_populates="valuations")


class Fundamentals(Base):
    __tablename__ = "fundamentals"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    asset_id = Column(
        String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # fractions 0-1
    vacancy_physical = Column(Float, nullable=True)
    vacancy_financial = Column(Float, nullable=True)
    wault_years = Column(Float, nullable=True)
    debt_ratio = Column(Float, nullable=True)
    liquidity_daily = Column(Numeric(18, 2, asdecimal=False), nullable=True)  # BRL traded per day
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    asset = relationship("Asset", back_populates="fundamentals")

    __table_args__ = (
        UniqueConstraint("user_id", "asset_id", name="uq_fundamentals_user_asset"),
    )


class UserSettings(Base):
    __tablename__ = "settings"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, unique=True)

    goal_amount = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=100000)
    alert_max_asset_pct = Column(Float, nullable=False, default=0.2)
    alert_income_drop_pct = Column(Float, nullable=False, default=0.2)
    alert_vacancy_pct = Column(Float, nullable=False, default=0.15)
    alert_asset_dy_drop_pct = Column(Float, nullable=False, default=0.2)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------- Market data ----------


class MarketQuote(Base):
    __tablename__ = "market_quotes"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    asset_id = Column(
        String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True
    )

    date = Column(Date, nullable=False, index=True)
    price = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    change = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    change_percent = Column(Float, nullable=True)
    volume = Column(BigInteger, nullable=True)
    week_52_high = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    week_52_low = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    source = Column(String(32), nullable=False, default="brapi")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    asset = relationship("Asset", back_populates="quotes")

    __table_args__ = (
        UniqueConstraint("user_id", "asset_id", "date", name="uq_market_quotes_user_asset_date"),
    )


class AssetCatalog(Base):
    """
    Watch list of tickers a user follows without necessarily holding them.
    """
    __tablename__ = "asset_catalog"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)

    ticker = Column(String(16), nullable=False)
    name = Column(Text, nullable=True)
    type = Column(String(16), nullable=True)
    sector = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    quotes = relationship(
        "MarketCatalogQuote", back_populates="catalog", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "ticker", name="uq_asset_catalog_user_ticker"),
    )


class MarketCatalogQuote(Base):
    __tablename__ = "market_catalog_quotes"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    catalog_id = Column(
        String(36), ForeignKey("asset_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )

    date = Column(Date, nullable=False, index=True)
    price = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    change = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    change_percent = Column(Float, nullable=True)
    volume = Column(BigInteger, nullable=True)
    week_52_high = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    week_52_low = Column(Numeric(18, 4, asdecimal=False), nullable=True)
    source = Column(String(32), nullable=False, default="brapi")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    catalog = relationship("AssetCatalog", back_populates="quotes")

    __table_args__ = (
        UniqueConstraint(
            "user_id", "catalog_id", "date", name="uq_market_catalog_quotes_user_catalog_date"
        ),
    )
