from fastapi import APIRouter, Depends, HTTPException
from filelock import Timeout
from sqlalchemy.orm import Session

from retread.db import get_db
from retread.services.sync_service import SyncService, SyncServiceException

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/sync/pull", summary="Replace the local shipments with the sheet snapshot")
def sync_pull(db: Session = Depends(get_db)):
    svc = SyncService(db)
    try:
        return svc.pull()
    except SyncServiceException as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Timeout:
        raise HTTPException(status_code=503, detail="Shipment store is busy")


@router.post("/sync/push", summary="Send the local shipments to the sheet")
def sync_push(force: bool = False, db: Session = Depends(get_db)):
    svc = SyncService(db)
    try:
        return svc.push(force=force)
    except SyncServiceException as e:
        raise HTTPException(status_code=502, detail=str(e))
