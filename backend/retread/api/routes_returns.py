from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retread.api.routes_shipments import service_error, stale_error
from retread.db import get_db
from retread.repositories.shipment_repo import StaleSnapshotError
from retread.schemas.shipment_schema import (
    AdmissionOut,
    BonusStatsOut,
    ReturnEventIn,
    shipment_out,
)
from retread.services.shipment_service import (
    ReturnResult,
    ShipmentService,
    ShipmentServiceException,
)

router = APIRouter(prefix="/api/shipments/{shipment_id}/returns", tags=["returns"])


def _result(res: ReturnResult) -> dict:
    return {
        "shipment": shipment_out(res.shipment),
        "stats": BonusStatsOut.model_validate(res.stats),
        "bonuses_unlocked": res.bonuses_unlocked,
    }


@router.post("", status_code=201)
def add_return(shipment_id: str, payload: ReturnEventIn, db: Session = Depends(get_db)):
    svc = ShipmentService(db)
    try:
        return _result(svc.add_return(shipment_id, payload.to_event()))
    except ShipmentServiceException as e:
        raise service_error(e)
    except StaleSnapshotError as e:
        raise stale_error(e)


@router.post("/validate", response_model=AdmissionOut)
def validate_return(
    shipment_id: str,
    payload: ReturnEventIn,
    replacing_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Dry-run admission, for clients that keep the save control disabled
    until a candidate would be accepted.
    """
    svc = ShipmentService(db)
    try:
        adm = svc.validate_return(
            shipment_id, payload.to_event(replacing_id), replacing_id=replacing_id
        )
    except ShipmentServiceException as e:
        raise service_error(e)
    return AdmissionOut(
        accepted=adm.accepted,
        reason=adm.reason.value if adm.reason else None,
        detail=adm.detail,
        remaining_capacity=max(0, adm.remaining_capacity),
        candidate_total=adm.candidate_total,
    )


@router.put("/{event_id}")
def edit_return(
    shipment_id: str,
    event_id: str,
    payload: ReturnEventIn,
    db: Session = Depends(get_db),
):
    svc = ShipmentService(db)
    try:
        return _result(svc.edit_return(shipment_id, event_id, payload.to_event(event_id)))
    except ShipmentServiceException as e:
        raise service_error(e)
    except StaleSnapshotError as e:
        raise stale_error(e)


@router.delete("/{event_id}")
def delete_return(shipment_id: str, event_id: str, db: Session = Depends(get_db)):
    svc = ShipmentService(db)
    try:
        return {"shipment": shipment_out(svc.delete_return(shipment_id, event_id))}
    except ShipmentServiceException as e:
        raise service_error(e)
    except StaleSnapshotError as e:
        raise stale_error(e)
