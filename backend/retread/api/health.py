from fastapi import APIRouter
from sqlalchemy import text

from retread.adapters.sheet_client import SheetClient
from retread.config import settings
from retread.db import engine

router = APIRouter()


@router.get("/health", tags=["health"])
def health():
    db_ok = False
    sheet_ok = None
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except Exception:
        db_ok = False

    # the sheet is optional; None means no endpoint configured
    if settings.SHEET_ENDPOINT_URL:
        sheet_ok = SheetClient(
            settings.SHEET_ENDPOINT_URL, timeout=settings.SHEET_TIMEOUT_SECONDS
        ).health_check()

    return {
        "status": "ok" if db_ok and sheet_ok is not False else "degraded",
        "db": db_ok,
        "sheet_endpoint": sheet_ok,
    }
