from collections.abc import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.infra.db import SessionLocal
from app.services.market_data import QuoteFetcher, build_quote_fetcher
from app.services.store import RecordStore


def get_db() -> Generator[Session, None, None]:
    """Yield a DB session and clean it up afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the auth proxy in front of the service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="missing X-User-Id header")
    return x_user_id.strip()


def get_quote_fetcher() -> Generator[QuoteFetcher, None, None]:
    """One fetcher per request; its HTTP clients are closed afterwards."""
    fetcher = build_quote_fetcher()
    try:
        yield fetcher
    finally:
        fetcher.close()
