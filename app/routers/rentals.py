# app/routers/rentals.py
"""Rental bookings, availability calendar and per-booking insurance."""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.rental import (
    BookingCreate, BookingOut, BookingReturn, BookingStatusUpdate, InsuranceDecision, InsuranceIn, InsuranceOut,
)
from app.schemas.vehicle import VehicleOut
from app.services import insurance_service, rental_service

router = APIRouter()


@router.get("/rentals/availability", response_model=list[VehicleOut], summary="Vehicles free for a date range")
def availability(start_date: date, end_date: date, db: Session = Depends(get_db)):
    if end_date <= start_date:
        raise HTTPException(status_code=422, detail="end_date must be after start_date")
    return rental_service.available_vehicles(db, start_date, end_date)


@router.get("/rentals/calendar/{year}/{month}", response_model=list[BookingOut])
def calendar(year: int, month: int, db: Session = Depends(get_db)):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be 1-12")
    return rental_service.bookings_for_month(db, year, month)


@router.post("/rentals", response_model=BookingOut, status_code=201, summary="Create a booking")
def create_booking(body: BookingCreate, db: Session = Depends(get_db)):
    """409 when the vehicle is already booked for an overlapping range."""
    return rental_service.create_booking(db, **body.model_dump())


@router.get("/rentals/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    return rental_service.get_booking(db, booking_id)


@router.put("/rentals/{booking_id}/status", response_model=BookingOut)
def update_status(booking_id: int, body: BookingStatusUpdate, db: Session = Depends(get_db)):
    return rental_service.update_booking_status(db, booking_id, body.status)


@router.post("/rentals/{booking_id}/return", response_model=BookingOut)
def return_booking(booking_id: int, body: BookingReturn = BookingReturn(), db: Session = Depends(get_db)):
    return rental_service.return_booking(db, booking_id, body.actual_return_date, body.late_fee_override)


@router.get("/rentals/{booking_id}/insurance", response_model=InsuranceOut)
def get_insurance(booking_id: int, db: Session = Depends(get_db)):
    insurance = insurance_service.get_insurance_for_booking(db, booking_id)
    if not insurance:
        raise HTTPException(status_code=404, detail=f"No insurance on file for booking {booking_id}")
    return insurance


@router.post("/rentals/{booking_id}/insurance", response_model=InsuranceOut, status_code=201)
def add_insurance(booking_id: int, body: InsuranceIn, db: Session = Depends(get_db)):
    return insurance_service.create_insurance(db, booking_id, body.model_dump())


@router.put("/insurance/{insurance_id}", response_model=InsuranceOut)
def edit_insurance(insurance_id: int, body: InsuranceIn, db: Session = Depends(get_db)):
    return insurance_service.update_insurance(db, insurance_id, body.model_dump(exclude_none=True))


@router.post("/insurance/{insurance_id}/verify", response_model=InsuranceOut)
def verify(insurance_id: int, body: InsuranceDecision, db: Session = Depends(get_db)):
    return insurance_service.verify_insurance(db, insurance_id, body.verified_by, body.notes)


@router.post("/insurance/{insurance_id}/fail", response_model=InsuranceOut)
def fail(insurance_id: int, body: InsuranceDecision, db: Session = Depends(get_db)):
    return insurance_service.fail_insurance(db, insurance_id, body.verified_by, body.notes)


@router.post("/insurance/{insurance_id}/override", response_model=InsuranceOut)
def override(insurance_id: int, body: InsuranceDecision, db: Session = Depends(get_db)):
    return insurance_service.override_insurance(db, insurance_id, body.verified_by, body.notes)
