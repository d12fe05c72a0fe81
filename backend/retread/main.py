import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from retread.api.health import router as health_router
from retread.api.routes_admin import router as admin_router
from retread.api.routes_returns import router as returns_router
from retread.api.routes_shipments import router as shipments_router
from retread.api.routes_stats import router as stats_router
from retread.config import configure_logging, settings
from retread.db import SessionLocal, init_db
from retread.services.sync_service import SyncService, SyncServiceException

log = logging.getLogger(__name__)


def sync_job():
    """Push pending local changes, then pull the shared snapshot."""
    db = SessionLocal()
    try:
        svc = SyncService(db)
        svc.push()
        svc.pull()
    except SyncServiceException as e:
        log.warning("sheet sync failed: %s", e)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()

    scheduler = None
    if settings.SHEET_ENDPOINT_URL:
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            sync_job,
            "interval",
            seconds=settings.SYNC_INTERVAL_SECONDS,
            id="sheet_sync",
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        log.info("sheet sync every %ss", settings.SYNC_INTERVAL_SECONDS)

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)


app = FastAPI(title="Retread Tracker - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(shipments_router)

app.include_router(returns_router)

app.include_router(stats_router)

app.include_router(admin_router)
