# app/services/plate_service.py
"""
Plate tracking: dealer plates and buyer's tags handed out with rentals and sales.

A plate has at most one active assignment (returned_at IS NULL). Assigning
marks the plate `assigned`; returning the last active assignment frees it.
scan_plate_alerts() looks for overdue rentals, expiring buyer's tags and
plates marked assigned with nothing accounting for them.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.models.plate import Plate, PlateAlert, PlateAssignment
from app.models.rental import RentalBooking
from app.services.alert_service import create_alert
from app.services.errors import PlateUnavailableError, RegistrationError, RegistrationNotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

PLATE_TYPES = ("dealer", "buyer_tag", "permanent")
ASSIGNMENT_TYPES = ("rental", "sale", "inventory")
UNUSABLE_STATUSES = ("expired", "lost")


@dataclass
class TagExpiry:
    days_remaining: int
    severity: str          # ok | warning | urgent | expired


def calculate_tag_expiry(expiration_date: date, today: Optional[date] = None) -> TagExpiry:
    """Whole-day countdown to a tag's expiry, bucketed into a severity tier."""
    today = today or date.today()
    days = (expiration_date - today).days
    if days <= 0:
        severity = "expired"
    elif days <= settings.PLATE_EXPIRY_URGENT_DAYS:
        severity = "urgent"
    elif days <= settings.PLATE_EXPIRY_WARNING_DAYS:
        severity = "warning"
    else:
        severity = "ok"
    return TagExpiry(days, severity)


def get_plate(db: Session, plate_id: int) -> Plate:
    plate = db.query(Plate).filter(Plate.id == plate_id).first()
    if not plate:
        raise RegistrationNotFoundError(f"Plate {plate_id} not found")
    return plate


def create_plate(db: Session, plate_number: str, plate_type: str,
                 expiration_date: Optional[date] = None, notes: Optional[str] = None) -> Plate:
    if plate_type not in PLATE_TYPES:
        raise RegistrationError(f"Unknown plate type '{plate_type}'")
    number = plate_number.strip().upper()
    if db.query(Plate).filter(Plate.plate_number == number).first():
        raise RegistrationError(f"Plate {number} already exists")
    now = datetime.utcnow()
    plate = Plate(plate_number=number, plate_type=plate_type, status="available",
                  expiration_date=expiration_date, notes=notes, created_at=now, updated_at=now)
    db.add(plate)
    db.commit()
    db.refresh(plate)
    return plate


def active_assignment(db: Session, plate_id: int) -> Optional[PlateAssignment]:
    return db.query(PlateAssignment).filter(
        PlateAssignment.plate_id == plate_id, PlateAssignment.returned_at.is_(None)
    ).first()


def assign_plate(db: Session, plate_id: int, assignment_type: str, *,
                 vehicle_id: Optional[int] = None, booking_id: Optional[int] = None,
                 registration_id: Optional[int] = None, customer_name: Optional[str] = None,
                 customer_phone: Optional[str] = None, expected_return_date: Optional[date] = None,
                 notes: Optional[str] = None) -> PlateAssignment:
    if assignment_type not in ASSIGNMENT_TYPES:
        raise RegistrationError(f"Unknown assignment type '{assignment_type}'")
    plate = get_plate(db, plate_id)
    if plate.status in UNUSABLE_STATUSES:
        raise PlateUnavailableError(f"Plate {plate.plate_number} is {plate.status}")
    if active_assignment(db, plate_id):
        raise PlateUnavailableError(f"Plate {plate.plate_number} is already assigned")

    # Buyer's tag expiry follows the sale's expected date
    if assignment_type == "sale" and plate.plate_type == "buyer_tag" and expected_return_date:
        plate.expiration_date = expected_return_date

    assignment = PlateAssignment(
        plate_id=plate_id, vehicle_id=vehicle_id, booking_id=booking_id,
        registration_id=registration_id, customer_name=customer_name,
        customer_phone=customer_phone, assignment_type=assignment_type,
        assigned_at=datetime.utcnow(), expected_return_date=expected_return_date,
        return_confirmed=False, notes=notes,
    )
    plate.status = "assigned"
    plate.updated_at = datetime.utcnow()
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    logger.info(f"[PLATES] {plate.plate_number} assigned ({assignment_type}) to {customer_name or 'inventory'}")
    return assignment


def return_assignment(db: Session, assignment_id: int, return_confirmed: bool = True,
                      notes: Optional[str] = None, commit: bool = True) -> PlateAssignment:
    assignment = db.query(PlateAssignment).filter(PlateAssignment.id == assignment_id).first()
    if not assignment:
        raise RegistrationNotFoundError(f"Plate assignment {assignment_id} not found")
    if assignment.returned_at is not None:
        return assignment

    assignment.returned_at = datetime.utcnow()
    assignment.return_confirmed = return_confirmed
    if notes:
        assignment.notes = notes
    db.flush()

    plate = get_plate(db, assignment.plate_id)
    if active_assignment(db, plate.id) is None and plate.status == "assigned":
        plate.status = "available"
        plate.updated_at = datetime.utcnow()
    if commit:
        db.commit()
        db.refresh(assignment)
    return assignment


def swap_plate(db: Session, plate_id: int, vehicle_id: int, booking_id: Optional[int],
               customer_name: Optional[str], customer_phone: Optional[str],
               expected_return_date: Optional[date]) -> PlateAssignment:
    """Close the plate's active assignment, then open a new rental assignment."""
    current = active_assignment(db, plate_id)
    if current:
        return_assignment(db, current.id, return_confirmed=True, notes="Closed by plate swap")
    return assign_plate(db, plate_id, "rental", vehicle_id=vehicle_id, booking_id=booking_id,
                        customer_name=customer_name, customer_phone=customer_phone,
                        expected_return_date=expected_return_date)


def get_plate_history(db: Session, plate_id: int) -> list[PlateAssignment]:
    """Newest first."""
    return (
        db.query(PlateAssignment)
        .filter(PlateAssignment.plate_id == plate_id)
        .order_by(PlateAssignment.assigned_at.desc(), PlateAssignment.id.desc())
        .all()
    )


def get_active_alerts(db: Session) -> list[PlateAlert]:
    return (
        db.query(PlateAlert)
        .filter(PlateAlert.resolved_at.is_(None))
        .order_by(PlateAlert.first_detected_at.desc())
        .all()
    )


def scan_plate_alerts(db: Session, today: Optional[date] = None) -> list[PlateAlert]:
    """Detect plate problems and raise alerts. Returns the newly created alerts."""
    today = today or date.today()
    created = []

    # 1. Overdue rentals
    overdue = db.query(PlateAssignment).filter(
        PlateAssignment.returned_at.is_(None),
        PlateAssignment.assignment_type == "rental",
        PlateAssignment.expected_return_date.isnot(None),
        PlateAssignment.expected_return_date < today,
    ).all()
    for assignment in overdue:
        days_late = (today - assignment.expected_return_date).days
        plate = get_plate(db, assignment.plate_id)
        alert = create_alert(db, plate.id, "overdue_rental", "urgent" if days_late > 1 else "warning",
                             f"Plate {plate.plate_number} rental overdue by {days_late} day(s)"
                             f" ({assignment.customer_name or 'unknown customer'})")
        if alert:
            created.append(alert)

    # 2. Expiring buyer's tags
    tags = db.query(Plate).filter(
        Plate.plate_type == "buyer_tag",
        Plate.status != "expired",
        Plate.expiration_date.isnot(None),
    ).all()
    for tag in tags:
        expiry = calculate_tag_expiry(tag.expiration_date, today)
        if expiry.severity == "ok":
            continue
        severity = "warning" if expiry.severity == "warning" else "urgent"
        alert = create_alert(db, tag.id, "expiring_buyer_tag", severity,
                             f"Buyer's tag {tag.plate_number} "
                             + ("has expired" if expiry.days_remaining <= 0
                                else f"expires in {expiry.days_remaining} day(s)"))
        if alert:
            created.append(alert)

    # 3. Unaccounted plates
    for plate in db.query(Plate).filter(Plate.status == "assigned").all():
        assignment = active_assignment(db, plate.id)
        if assignment is None:
            reason, severity = "marked assigned with no active assignment", "urgent"
        elif assignment.booking_id is not None:
            booking = db.query(RentalBooking).filter(RentalBooking.id == assignment.booking_id).first()
            if not booking or booking.status not in ("returned", "cancelled"):
                continue
            reason, severity = f"still out on {booking.status} booking {booking.booking_id}", "urgent"
        elif assignment.registration_id is None and assignment.assignment_type != "inventory":
            reason, severity = "assigned with no booking or registration", "warning"
        else:
            continue
        alert = create_alert(db, plate.id, "unaccounted", severity, f"Plate {plate.plate_number} {reason}")
        if alert:
            created.append(alert)

    logger.info(f"[PLATES] Alert scan complete: {len(created)} new alert(s)")
    return created
