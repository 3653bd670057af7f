from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from transfer_ack.claims.router import admin_router as claims_admin_router
from transfer_ack.claims.router import router as claims_router
from transfer_ack.core.config import get_settings
from transfer_ack.core.logging import configure_logging, request_id_middleware
from transfer_ack.db import base
from transfer_ack.db.init import create_tables, sanitize_db_url
from transfer_ack.db.seed import seed_database
from transfer_ack.manual.router import router as manual_router
from transfer_ack.polling.poller import build_poller
from transfer_ack.polling.router import router as poller_router

logger = structlog.get_logger(__name__)

settings = get_settings()
configure_logging(settings.ENV)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, sync accounts and users, then run the poller."""
    logger.info(
        "app.starting",
        env=settings.ENV,
        database=sanitize_db_url(base.normalize_database_url(settings.DATABASE_URL)),
        provider=settings.PROVIDER_CLIENT,
    )

    if settings.DB_AUTO_CREATE:
        await create_tables()
    await seed_database(base.AsyncSessionLocal, settings)

    poller = build_poller(settings, session_factory=base.AsyncSessionLocal)
    app.state.poller = poller
    if poller.config.enabled:
        await poller.start()
    else:
        logger.warning("app.poller_disabled")

    logger.info("app.started")

    yield

    logger.info("app.stopping")
    await poller.stop()
    await poller.client.aclose()
    await base.engine.dispose()
    logger.info("app.stopped")


app = FastAPI(title="Transfer Acknowledgment Service", version="0.1.0", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(claims_router)
app.include_router(claims_admin_router)
app.include_router(manual_router)
app.include_router(poller_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    return {"status": "healthy", "env": settings.ENV}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
