from fastapi import FastAPI

from app.api.routes.health import router as health_router
from app.api.routes.records import router as records_router
from app.api.routes.portfolio import router as portfolio_router
from app.api.routes.quotes import router as quotes_router
from app.api.routes.csv_io import router as csv_router
from app.infra.logging import setup_logging
from app.infra.settings import settings


def create_app() -> FastAPI:
    setup_logging(settings.fii_log_level)

    app = FastAPI(
        title="FII Tracker",
        version="0.1.0",
        description="Real-estate fund portfolio: holdings, monthly income, quotes, scores and alerts.",
    )

    app.include_router(health_router)
    app.include_router(records_router)
    app.include_router(portfolio_router)
    app.include_router(quotes_router)
    app.include_router(csv_router)

    @app.get("/", tags=["meta"])
    async def root() -> dict:
        return {"service": "fii-tracker", "status": "running"}

    return app


app = create_app()
