from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from retread.db import get_db
from retread.engine.types import ShipmentStatus
from retread.repositories.shipment_repo import StaleSnapshotError
from retread.schemas.shipment_schema import (
    ShipmentIn,
    ShipmentOut,
    ShipmentPatch,
    shipment_out,
)
from retread.services.shipment_service import (
    ShipmentService,
    ShipmentServiceException,
)

router = APIRouter(prefix="/api/shipments", tags=["shipments"])


def service_error(e: ShipmentServiceException) -> HTTPException:
    return HTTPException(
        status_code=e.status_code, detail={"reason": e.reason, "detail": str(e)}
    )


def stale_error(e: StaleSnapshotError) -> HTTPException:
    return HTTPException(
        status_code=409, detail={"reason": "StaleSnapshot", "detail": str(e)}
    )


@router.get("", response_model=List[ShipmentOut])
def list_shipments(status: Optional[ShipmentStatus] = None, db: Session = Depends(get_db)):
    svc = ShipmentService(db)
    return [shipment_out(s) for s in svc.list_shipments(status=status)]


@router.post("", response_model=ShipmentOut, status_code=201)
def create_shipment(payload: ShipmentIn, db: Session = Depends(get_db)):
    svc = ShipmentService(db)
    try:
        shipment = svc.create_shipment(payload.send_date, payload.quantity_sent)
    except ShipmentServiceException as e:
        raise service_error(e)
    except StaleSnapshotError as e:
        raise stale_error(e)
    return shipment_out(shipment)


@router.get("/{shipment_id}", response_model=ShipmentOut)
def get_shipment(shipment_id: str, db: Session = Depends(get_db)):
    svc = ShipmentService(db)
    try:
        return shipment_out(svc.get_shipment(shipment_id))
    except ShipmentServiceException as e:
        raise service_error(e)


@router.patch("/{shipment_id}", response_model=ShipmentOut)
def correct_shipment(
    shipment_id: str, payload: ShipmentPatch, db: Session = Depends(get_db)
):
    svc = ShipmentService(db)
    try:
        shipment = svc.correct_shipment(
            shipment_id, quantity=payload.quantity_sent, send_date=payload.send_date
        )
    except ShipmentServiceException as e:
        raise service_error(e)
    except StaleSnapshotError as e:
        raise stale_error(e)
    return shipment_out(shipment)


@router.delete("/{shipment_id}")
def delete_shipment(shipment_id: str, db: Session = Depends(get_db)):
    svc = ShipmentService(db)
    try:
        deleted = svc.delete_shipment(shipment_id)
    except ShipmentServiceException as e:
        raise service_error(e)
    except StaleSnapshotError as e:
        raise stale_error(e)
    return {"shipment_id": shipment_id, "deleted": deleted}
