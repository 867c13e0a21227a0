# app/schemas/plate.py
from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional


class PlateCreate(BaseModel):
    plate_number: str
    plate_type: str                     # dealer | buyer_tag | permanent
    expiration_date: Optional[date] = None
    notes: Optional[str] = None


class PlateOut(BaseModel):
    id: int
    plate_number: str
    plate_type: str
    status: str
    expiration_date: Optional[date]
    notes: Optional[str]

    class Config:
        from_attributes = True


class PlateAssign(BaseModel):
    assignment_type: str                # rental | sale | inventory
    vehicle_id: Optional[int] = None
    booking_id: Optional[int] = None
    registration_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    expected_return_date: Optional[date] = None
    notes: Optional[str] = None


class PlateSwap(BaseModel):
    vehicle_id: int
    booking_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    expected_return_date: Optional[date] = None


class AssignmentReturn(BaseModel):
    return_confirmed: bool = True
    notes: Optional[str] = None


class AssignmentOut(BaseModel):
    id: int
    plate_id: int
    vehicle_id: Optional[int]
    booking_id: Optional[int]
    registration_id: Optional[int]
    customer_name: Optional[str]
    customer_phone: Optional[str]
    assignment_type: str
    assigned_at: datetime
    expected_return_date: Optional[date]
    returned_at: Optional[datetime]
    return_confirmed: bool
    notes: Optional[str]

    class Config:
        from_attributes = True
