# app/routers/vehicles.py
"""Vehicle inventory: CRUD plus VIN lookup used to pre-fill registrations."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.models.vehicle import Vehicle
from app.schemas.vehicle import VehicleCreate, VehicleOut, VehicleUpdate
from app.services import vehicle_service

router = APIRouter()


@router.get("/vehicles", response_model=list[VehicleOut], summary="List inventory")
def list_vehicles(listing_type: Optional[str] = None, status: Optional[str] = None,
                  db: Session = Depends(get_db)):
    q = db.query(Vehicle)
    if listing_type:
        q = q.filter(Vehicle.listing_type == listing_type)
    if status:
        q = q.filter(Vehicle.status == status)
    return q.order_by(Vehicle.created_at.desc()).all()


@router.post("/vehicles", response_model=VehicleOut, status_code=201, summary="Add a vehicle")
def add_vehicle(body: VehicleCreate, db: Session = Depends(get_db)):
    return vehicle_service.create_vehicle(db, body.model_dump())


@router.get("/vehicles/lookup/{vin}", summary="Look up a VIN")
def lookup_vehicle(vin: str, db: Session = Depends(get_db)):
    vehicle = vehicle_service.lookup_vehicle_by_vin(db, vin)
    if not vehicle:
        return {"vin": vin.upper(), "status": "unknown", "in_inventory": False}
    return {"vin": vehicle.vin, "status": vehicle.status, "in_inventory": True,
            "vehicle_id": vehicle.id, "year": vehicle.year, "make": vehicle.make, "model": vehicle.model}


@router.get("/vehicles/{vehicle_id}", response_model=VehicleOut)
def get_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    return vehicle_service.get_vehicle(db, vehicle_id)


@router.put("/vehicles/{vehicle_id}", response_model=VehicleOut)
def update_vehicle(vehicle_id: int, body: VehicleUpdate, db: Session = Depends(get_db)):
    return vehicle_service.update_vehicle(db, vehicle_id, body.model_dump(exclude_none=True))


@router.delete("/vehicles/{vehicle_id}", summary="Remove a vehicle")
def remove_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    vehicle_service.delete_vehicle(db, vehicle_id)
    return {"status": "removed", "vehicle_id": vehicle_id}
