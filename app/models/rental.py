# app/models/rental.py
"""
Rental fleet tables.
  rental_bookings   — date-ranged bookings of a rentable vehicle
  rental_insurance  — customer insurance captured per booking, with computed
                      coverage flags and an admin verification status
"""

from sqlalchemy import Column, Integer, String, DateTime, Date, Text, Boolean, Float, ForeignKey
from app.database import Base


class RentalBooking(Base):
    __tablename__ = "rental_bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(20), unique=True, nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(30))
    customer_email = Column(String(255))
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    actual_return_date = Column(Date)
    daily_rate = Column(Float, nullable=False)
    weekly_rate = Column(Float)
    total_cost = Column(Float, nullable=False)
    late_fee = Column(Float)
    late_fee_override = Column(Float)
    status = Column(String(20), default="reserved", nullable=False, index=True)   # reserved | active | overdue | returned | cancelled
    notes = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<RentalBooking {self.booking_id} vehicle={self.vehicle_id} {self.start_date}..{self.end_date} {self.status}>"


class RentalInsurance(Base):
    __tablename__ = "rental_insurance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("rental_bookings.id"), nullable=False, index=True)
    insurance_company = Column(String(200))
    policy_number = Column(String(100))
    effective_date = Column(Date)
    expiration_date = Column(Date)
    bodily_injury_per_person = Column(Integer)
    bodily_injury_per_accident = Column(Integer)
    property_damage = Column(Integer)
    card_image_url = Column(Text)

    # Computed by insurance_service.validate_insurance_coverage
    coverage_meets_minimum = Column(Boolean, default=False, nullable=False)
    expires_during_rental = Column(Boolean, default=False, nullable=False)

    verification_status = Column(String(20), default="pending", nullable=False)   # pending | verified | failed | overridden
    verified_by = Column(String(200))
    verified_at = Column(DateTime)
    verification_notes = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<RentalInsurance {self.id} booking={self.booking_id} status={self.verification_status}>"
