# app/schemas/vehicle.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class VehicleCreate(BaseModel):
    vin: str
    year: int
    make: str
    model: str
    mileage: Optional[int] = None
    price: Optional[float] = None
    listing_type: str = "sale_only"     # sale_only | rental_only | both
    daily_rate: Optional[float] = None
    weekly_rate: Optional[float] = None
    description: Optional[str] = None


class VehicleUpdate(BaseModel):
    mileage: Optional[int] = None
    price: Optional[float] = None
    status: Optional[str] = None
    listing_type: Optional[str] = None
    daily_rate: Optional[float] = None
    weekly_rate: Optional[float] = None
    description: Optional[str] = None


class VehicleOut(BaseModel):
    id: int
    vin: str
    year: int
    make: str
    model: str
    mileage: Optional[int]
    price: Optional[float]
    status: str
    listing_type: str
    daily_rate: Optional[float]
    weekly_rate: Optional[float]
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
