from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.infra.db import Base
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

log = logging.getLogger(__name__)

# Natural keys used for upserts. Valuations have none on purpose.
CONFLICT_KEYS: Dict[Type[Base], Tuple[str, ...]] = {
    Asset: ("user_id", "ticker"),
    Position: ("user_id", "asset_id"),
    Income: ("user_id", "asset_id", "month"),
    Fundamentals: ("user_id", "asset_id"),
    UserSettings: ("user_id",),
    AssetCatalog: ("user_id", "ticker"),
    MarketQuote: ("user_id", "asset_id", "date"),
    MarketCatalogQuote: ("user_id", "catalog_id", "date"),
}


class StoreError(RuntimeError):
    """A read or write against the database failed."""


def row_to_dict(row: Any) -> Dict[str, Any]:
    """Column values of an ORM row as a plain dict (relationships excluded)."""
    return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}


class RecordStore:
    """
    Thin record-store facade over a SQLAlchemy session.

    The session is passed in so callers (FastAPI deps, scripts, tests)
    own its lifecycle.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- reads ----------

    def fetch_all(
        self,
        model: Type[Base],
        order_by: Optional[Sequence[str]] = None,
        **filters: Any,
    ) -> List[Any]:
        try:
            q = self.db.query(model)
            for field, value in filters.items():
                q = q.filter(getattr(model, field) == value)
            for field in order_by or ():
                q = q.order_by(getattr(model, field))
            return q.all()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to load {model.__tablename__}: {e}") from e

    def fetch_records(self, model: Type[Base], **filters: Any) -> List[Dict[str, Any]]:
        return [row_to_dict(r) for r in self.fetch_all(model, **filters)]

    def get(self, model: Type[Base], record_id: str) -> Optional[Any]:
        try:
            return self.db.get(model, record_id)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to load {model.__tablename__} {record_id}: {e}") from e

    def existing_valuation_keys(self, pairs: Iterable[Tuple[str, date]]) -> set:
        """(asset_id, date) pairs among `pairs` that already have a valuation row."""
        wanted = {(str(a), d) for a, d in pairs}
        if not wanted:
            return set()
        asset_ids = sorted({a for a, _ in wanted})
        dates = sorted({d for _, d in wanted})
        try:
            rows = (
                self.db.query(Valuation.asset_id, Valuation.date)
                .filter(Valuation.asset_id.in_(asset_ids))
                .filter(Valuation.date.in_(dates))
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreError(f"failed to load valuations: {e}") from e
        return {(str(a), d) for a, d in rows} & wanted

    # ---------- writes ----------

    def _find_by_keys(self, model: Type[Base], record: Dict[str, Any], keys: Sequence[str]) -> Optional[Any]:
        q = self.db.query(model)
        for k in keys:
            q = q.filter(getattr(model, k) == record.get(k))
        return q.one_or_none()

    def _apply_upsert(self, model: Type[Base], record: Dict[str, Any], keys: Sequence[str]) -> Any:
        existing = None
        if record.get("id"):
            existing = self.db.get(model, record["id"])
        if existing is None and keys:
            existing = self._find_by_keys(model, record, keys)

        if existing is not None:
            for field, value in record.items():
                if field == "id":
                    continue
                setattr(existing, field, value)
            self.db.add(existing)
            return existing

        row = model(**{k: v for k, v in record.items() if not (k == "id" and v is None)})
        self.db.add(row)
        return row

    def upsert(
        self,
        model: Type[Base],
        record: Dict[str, Any],
        conflict_keys: Optional[Sequence[str]] = None,
    ) -> Any:
        """Insert or update one record matched by id, then by its conflict keys."""
        rows = self.upsert_many(model, [record], conflict_keys)
        return rows[0]

    def upsert_many(
        self,
        model: Type[Base],
        records: Sequence[Dict[str, Any]],
        conflict_keys: Optional[Sequence[str]] = None,
    ) -> List[Any]:
        """
        Upsert a batch in one transaction; last write wins per conflict key.
        On failure the whole batch is rolled back and StoreError raised.
        """
        keys = tuple(conflict_keys) if conflict_keys is not None else CONFLICT_KEYS.get(model, ())
        if not records:
            return []
        try:
            rows = []
            for record in records:
                rows.append(self._apply_upsert(model, record, keys))
                # later records in the batch must see earlier ones
                self.db.flush()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("upsert into %s failed: %s", model.__tablename__, e)
            raise StoreError(f"failed to save {model.__tablename__}: {e}") from e
        for row in rows:
            self.db.refresh(row)
        return rows

    def insert_many(self, model: Type[Base], records: Sequence[Dict[str, Any]]) -> List[Any]:
        if not records:
            return []
        try:
            rows = [model(**r) for r in records]
            self.db.add_all(rows)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("insert into %s failed: %s", model.__tablename__, e)
            raise StoreError(f"failed to save {model.__tablename__}: {e}") from e
        return rows

    def delete(self, model: Type[Base], record_id: str, **filters: Any) -> bool:
        """Delete by id (optionally also matching filters such as user_id)."""
        try:
            row = self.db.get(model, record_id)
            if row is None:
                return False
            for field, value in filters.items():
                if getattr(row, field) != value:
                    return False
            # reload relationships so cascades see children added by foreign key
            self.db.refresh(row)
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"failed to delete {model.__tablename__} {record_id}: {e}") from e
        return True
