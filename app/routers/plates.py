# app/routers/plates.py
"""Dealer plates and buyer's tags: inventory, assignments and alert scan."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.models.plate import Plate
from app.schemas.alert import PlateAlertOut
from app.schemas.plate import AssignmentOut, AssignmentReturn, PlateAssign, PlateCreate, PlateOut, PlateSwap
from app.services import plate_service

router = APIRouter()


@router.get("/plates", response_model=list[PlateOut], summary="List plates")
def list_plates(status: Optional[str] = None, plate_type: Optional[str] = None, db: Session = Depends(get_db)):
    q = db.query(Plate)
    if status:
        q = q.filter(Plate.status == status)
    if plate_type:
        q = q.filter(Plate.plate_type == plate_type)
    return q.order_by(Plate.plate_number.asc()).all()


@router.post("/plates", response_model=PlateOut, status_code=201)
def add_plate(body: PlateCreate, db: Session = Depends(get_db)):
    return plate_service.create_plate(db, body.plate_number, body.plate_type,
                                      expiration_date=body.expiration_date, notes=body.notes)


@router.get("/plates/{plate_id}/history", response_model=list[AssignmentOut], summary="Assignment history, newest first")
def plate_history(plate_id: int, db: Session = Depends(get_db)):
    plate_service.get_plate(db, plate_id)
    return plate_service.get_plate_history(db, plate_id)


@router.post("/plates/{plate_id}/assign", response_model=AssignmentOut, status_code=201)
def assign_plate(plate_id: int, body: PlateAssign, db: Session = Depends(get_db)):
    """409 if the plate is already out, expired or lost."""
    return plate_service.assign_plate(db, plate_id, body.assignment_type,
                                      **body.model_dump(exclude={"assignment_type"}))


@router.post("/plates/{plate_id}/swap", response_model=AssignmentOut, status_code=201)
def swap_plate(plate_id: int, body: PlateSwap, db: Session = Depends(get_db)):
    return plate_service.swap_plate(db, plate_id, body.vehicle_id, body.booking_id, body.customer_name,
                                    body.customer_phone, body.expected_return_date)


@router.post("/plate-assignments/{assignment_id}/return", response_model=AssignmentOut)
def return_assignment(assignment_id: int, body: AssignmentReturn = AssignmentReturn(),
                      db: Session = Depends(get_db)):
    return plate_service.return_assignment(db, assignment_id, body.return_confirmed, body.notes)


@router.post("/plates/alerts/scan", response_model=list[PlateAlertOut], summary="Run the plate alert scan")
def scan_alerts(db: Session = Depends(get_db)):
    return plate_service.scan_plate_alerts(db)
