# app/services/rental_service.py
"""
Rental bookings: availability, overlap checks, pricing and booking status.

Two bookings of the same vehicle conflict when neither is cancelled/returned
and their date ranges overlap (start < other.end and end > other.start), so
a return day can be the next booking's pick-up day.
"""

import math
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.rental import RentalBooking
from app.models.vehicle import Vehicle
from app.services.errors import (
    BookingConflictError, InvalidBookingTransitionError, RegistrationError, RegistrationNotFoundError,
)
from app.services.vehicle_service import get_vehicle
from app.utils.logger import get_logger

logger = get_logger(__name__)

INACTIVE_STATUSES = ("cancelled", "returned")

BOOKING_TRANSITIONS = {
    "reserved": ("active", "cancelled"),
    "active": ("returned", "overdue"),
    "overdue": ("returned",),
    "returned": (),
    "cancelled": (),
}


@dataclass
class LateFee:
    amount: float
    days: int
    is_overridden: bool


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a < end_b and end_a > start_b


def calculate_booking_total(start_date: date, end_date: date, daily_rate: float,
                            weekly_rate: Optional[float] = None) -> float:
    """Weekly chunks plus daily remainder once the rental reaches 7 days; minimum one day."""
    total_days = max(1, (end_date - start_date).days)
    if weekly_rate and total_days >= 7:
        weeks, days = divmod(total_days, 7)
        return round(weeks * weekly_rate + days * daily_rate, 2)
    return round(total_days * daily_rate, 2)


def calculate_late_fee(end_date: date, actual_return_date: Optional[date], daily_rate: float,
                       override: Optional[float] = None, today: Optional[date] = None) -> LateFee:
    """An override (including 0 = waived) replaces the computed amount."""
    returned = actual_return_date or today or date.today()
    days = max(0, math.ceil((returned - end_date).days))
    if override is not None:
        return LateFee(override, days, True)
    return LateFee(round(days * daily_rate, 2), days, False)


def find_conflicts(db: Session, vehicle_id: int, start_date: date, end_date: date,
                   exclude_booking_id: Optional[int] = None) -> list[RentalBooking]:
    q = db.query(RentalBooking).filter(
        RentalBooking.vehicle_id == vehicle_id,
        RentalBooking.status.notin_(INACTIVE_STATUSES),
        RentalBooking.start_date < end_date,
        RentalBooking.end_date > start_date,
    )
    if exclude_booking_id is not None:
        q = q.filter(RentalBooking.id != exclude_booking_id)
    return q.all()


def available_vehicles(db: Session, start_date: date, end_date: date) -> list[Vehicle]:
    """Rental-eligible vehicles with no conflicting booking in [start_date, end_date)."""
    vehicles = db.query(Vehicle).filter(Vehicle.listing_type.in_(("rental_only", "both"))).all()
    busy = {
        vehicle_id for (vehicle_id,) in db.query(RentalBooking.vehicle_id).filter(
            RentalBooking.status.notin_(INACTIVE_STATUSES),
            RentalBooking.start_date < end_date,
            RentalBooking.end_date > start_date,
        ).all()
    }
    return [v for v in vehicles if v.id not in busy]


def _next_booking_id(db: Session, year: int) -> str:
    prefix = f"RB-{year}-"
    rows = db.query(RentalBooking.booking_id).filter(RentalBooking.booking_id.like(f"{prefix}%")).all()
    suffixes = [int(b[len(prefix):]) for (b,) in rows if b[len(prefix):].isdigit()]
    return f"{prefix}{max(suffixes, default=0) + 1:04d}"


def get_booking(db: Session, booking_id: int) -> RentalBooking:
    booking = db.query(RentalBooking).filter(RentalBooking.id == booking_id).first()
    if not booking:
        raise RegistrationNotFoundError(f"Booking {booking_id} not found")
    return booking


def create_booking(db: Session, vehicle_id: int, customer_name: str, start_date: date, end_date: date,
                   customer_phone: Optional[str] = None, customer_email: Optional[str] = None,
                   daily_rate: Optional[float] = None, weekly_rate: Optional[float] = None,
                   notes: Optional[str] = None) -> RentalBooking:
    if end_date <= start_date:
        raise RegistrationError("Booking end date must be after the start date")
    vehicle = get_vehicle(db, vehicle_id)
    if not vehicle.is_rentable:
        raise RegistrationError(f"{vehicle.title} is not listed for rental")

    conflicts = find_conflicts(db, vehicle_id, start_date, end_date)
    if conflicts:
        ids = ", ".join(b.booking_id for b in conflicts)
        raise BookingConflictError(f"{vehicle.title} is already booked for those dates ({ids})")

    daily = daily_rate if daily_rate is not None else vehicle.daily_rate
    if daily is None:
        raise RegistrationError(f"No daily rate set for {vehicle.title}")
    weekly = weekly_rate if weekly_rate is not None else vehicle.weekly_rate

    now = datetime.utcnow()
    booking = RentalBooking(
        booking_id=_next_booking_id(db, now.year), vehicle_id=vehicle_id,
        customer_name=customer_name, customer_phone=customer_phone, customer_email=customer_email,
        start_date=start_date, end_date=end_date, daily_rate=daily, weekly_rate=weekly,
        total_cost=calculate_booking_total(start_date, end_date, daily, weekly),
        status="reserved", notes=notes, created_at=now, updated_at=now,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(f"[RENTALS] {booking.booking_id}: {vehicle.title} {start_date}..{end_date} for {customer_name}")
    return booking


def update_booking_status(db: Session, booking_id: int, status: str) -> RentalBooking:
    booking = get_booking(db, booking_id)
    allowed = BOOKING_TRANSITIONS.get(booking.status, ())
    if status not in allowed:
        raise InvalidBookingTransitionError(
            f"Booking {booking.booking_id} cannot move from {booking.status} to {status}"
        )
    booking.status = status
    booking.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(booking)
    return booking


def cancel_booking(db: Session, booking_id: int) -> RentalBooking:
    return update_booking_status(db, booking_id, "cancelled")


def return_booking(db: Session, booking_id: int, actual_return_date: Optional[date] = None,
                   late_fee_override: Optional[float] = None) -> RentalBooking:
    booking = get_booking(db, booking_id)
    if "returned" not in BOOKING_TRANSITIONS.get(booking.status, ()):
        raise InvalidBookingTransitionError(f"Booking {booking.booking_id} is {booking.status}, cannot return")
    booking.actual_return_date = actual_return_date or date.today()
    booking.late_fee_override = late_fee_override
    fee = calculate_late_fee(booking.end_date, booking.actual_return_date, booking.daily_rate, late_fee_override)
    booking.late_fee = fee.amount
    booking.status = "returned"
    booking.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(booking)
    logger.info(f"[RENTALS] {booking.booking_id} returned, late fee {fee.amount} ({fee.days} day(s))")
    return booking


def bookings_for_month(db: Session, year: int, month: int) -> list[RentalBooking]:
    """Bookings overlapping the calendar month, for the calendar view."""
    month_start = date(year, month, 1)
    month_end = date(year, month, monthrange(year, month)[1])
    return (
        db.query(RentalBooking)
        .filter(RentalBooking.start_date <= month_end, RentalBooking.end_date >= month_start)
        .order_by(RentalBooking.start_date.asc())
        .all()
    )
