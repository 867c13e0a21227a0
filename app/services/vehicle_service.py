# app/services/vehicle_service.py
"""
Vehicle inventory helpers.
Used by the vehicles router, registration_service (draft pre-fill) and rental_service.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.registration import Registration
from app.models.vehicle import Vehicle
from app.services.errors import RegistrationError, RegistrationNotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

LISTING_TYPES = ("sale_only", "rental_only", "both")


def lookup_vehicle_by_vin(db: Session, vin: str) -> Optional[Vehicle]:
    """Find a vehicle by VIN. Returns None if not found."""
    return db.query(Vehicle).filter(Vehicle.vin == vin.strip().upper()).first()


def get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise RegistrationNotFoundError(f"Vehicle {vehicle_id} not found")
    return vehicle


def create_vehicle(db: Session, data: dict) -> Vehicle:
    vin = data["vin"].strip().upper()
    if lookup_vehicle_by_vin(db, vin):
        raise RegistrationError(f"VIN {vin} already in inventory")
    if data.get("listing_type", "sale_only") not in LISTING_TYPES:
        raise RegistrationError(f"Unknown listing type '{data['listing_type']}'")
    now = datetime.utcnow()
    vehicle = Vehicle(**{**data, "vin": vin}, created_at=now, updated_at=now)
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info(f"[INVENTORY] Added {vehicle.vin} {vehicle.title}")
    return vehicle


def update_vehicle(db: Session, vehicle_id: int, changes: dict) -> Vehicle:
    vehicle = get_vehicle(db, vehicle_id)
    if changes.get("listing_type") and changes["listing_type"] not in LISTING_TYPES:
        raise RegistrationError(f"Unknown listing type '{changes['listing_type']}'")
    for field, value in changes.items():
        setattr(vehicle, field, value)
    vehicle.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(vehicle)
    return vehicle


def delete_vehicle(db: Session, vehicle_id: int):
    """Hard-delete an inventory row. Registrations keep their denormalized copy."""
    vehicle = get_vehicle(db, vehicle_id)
    db.query(Registration).filter(Registration.vehicle_id == vehicle_id).update(
        {Registration.vehicle_id: None}, synchronize_session=False
    )
    db.delete(vehicle)
    db.commit()
    logger.info(f"[INVENTORY] Removed {vehicle.vin}")
