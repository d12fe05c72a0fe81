from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retread.db import get_db
from retread.schemas.shipment_schema import BonusStatsOut, StatsOut
from retread.services.shipment_service import ShipmentService

router = APIRouter()


@router.get("/api/stats", response_model=StatsOut, tags=["stats"])
def stats(db: Session = Depends(get_db)):
    # recomputed from the full store on every read, nothing is cached
    data = ShipmentService(db).dashboard()
    data["stats"] = BonusStatsOut.model_validate(data["stats"])
    return StatsOut(**data)
