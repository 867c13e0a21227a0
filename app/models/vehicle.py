# app/models/vehicle.py
"""
Vehicle inventory table — sale and rental stock.
Read by registration_service to pre-populate a registration's denormalized
vehicle fields, and by rental_service for availability checks.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float, Text
from app.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vin = Column(String(17), unique=True, nullable=False, index=True)
    year = Column(Integer, nullable=False)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    mileage = Column(Integer)
    price = Column(Float)
    status = Column(String(20), default="available", nullable=False)         # available | pending | sold
    listing_type = Column(String(20), default="sale_only", nullable=False)   # sale_only | rental_only | both
    daily_rate = Column(Float)
    weekly_rate = Column(Float)
    description = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    @property
    def title(self) -> str:
        return f"{self.year} {self.make} {self.model}"

    @property
    def is_rentable(self) -> bool:
        return self.listing_type in ("rental_only", "both")

    def __repr__(self):
        return f"<Vehicle {self.vin} {self.title} status={self.status}>"
