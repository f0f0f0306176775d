from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.infra.settings import settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/", summary="Health check")
def health_check(db: Session = Depends(get_db)) -> dict:
    """
    Liveness plus a DB ping. A failed ping is reported, not raised, so the
    probe still answers while the database is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        db_ok = False

    return {
        "service": "fii-tracker",
        "env": settings.fii_env,
        "status": "ok" if db_ok else "degraded",
        "db_ok": db_ok,
    }
