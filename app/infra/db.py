from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings import settings

# Single source of truth for Base
Base = declarative_base()

_is_sqlite = settings.fii_db_url.startswith("sqlite")

engine = create_engine(
    settings.fii_db_url,
    future=True,
    # FastAPI runs sync endpoints on a thread pool
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    pool_pre_ping=not _is_sqlite,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)
