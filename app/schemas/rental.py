# app/schemas/rental.py
from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional


class BookingCreate(BaseModel):
    vehicle_id: int
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    start_date: date
    end_date: date
    daily_rate: Optional[float] = None     # defaults to the vehicle's rates
    weekly_rate: Optional[float] = None
    notes: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: str


class BookingReturn(BaseModel):
    actual_return_date: Optional[date] = None
    late_fee_override: Optional[float] = None


class BookingOut(BaseModel):
    id: int
    booking_id: str
    vehicle_id: int
    customer_name: str
    customer_phone: Optional[str]
    customer_email: Optional[str]
    start_date: date
    end_date: date
    actual_return_date: Optional[date]
    daily_rate: float
    weekly_rate: Optional[float]
    total_cost: float
    late_fee: Optional[float]
    late_fee_override: Optional[float]
    status: str
    notes: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class InsuranceIn(BaseModel):
    insurance_company: Optional[str] = None
    policy_number: Optional[str] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    bodily_injury_per_person: Optional[int] = None
    bodily_injury_per_accident: Optional[int] = None
    property_damage: Optional[int] = None
    card_image_url: Optional[str] = None


class InsuranceDecision(BaseModel):
    verified_by: str
    notes: Optional[str] = None


class InsuranceOut(BaseModel):
    id: int
    booking_id: int
    insurance_company: Optional[str]
    policy_number: Optional[str]
    effective_date: Optional[date]
    expiration_date: Optional[date]
    bodily_injury_per_person: Optional[int]
    bodily_injury_per_accident: Optional[int]
    property_damage: Optional[int]
    card_image_url: Optional[str]
    coverage_meets_minimum: bool
    expires_during_rental: bool
    verification_status: str
    verified_by: Optional[str]
    verified_at: Optional[datetime]
    verification_notes: Optional[str]

    class Config:
        from_attributes = True
