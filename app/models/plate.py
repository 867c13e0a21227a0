# app/models/plate.py
"""
Plate tracking tables.
  plates             — physical plates (dealer plates, buyer's tags, permanent)
  plate_assignments  — who holds a plate and until when; returned_at IS NULL = active
  plate_alerts       — overdue / expiring / unaccounted plates, raised by plate_service
"""

from sqlalchemy import Column, Integer, String, DateTime, Date, Text, Boolean, ForeignKey
from app.database import Base


class Plate(Base):
    __tablename__ = "plates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_number = Column(String(20), unique=True, nullable=False, index=True)
    plate_type = Column(String(20), nullable=False)                  # dealer | buyer_tag | permanent
    status = Column(String(20), default="available", nullable=False)  # available | assigned | expired | lost
    expiration_date = Column(Date)
    notes = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Plate {self.plate_number} type={self.plate_type} status={self.status}>"


class PlateAssignment(Base):
    __tablename__ = "plate_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_id = Column(Integer, ForeignKey("plates.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"))
    booking_id = Column(Integer, ForeignKey("rental_bookings.id"))
    registration_id = Column(Integer, ForeignKey("registrations.id"))
    customer_name = Column(String(200))
    customer_phone = Column(String(30))
    assignment_type = Column(String(20), nullable=False)   # rental | sale | inventory
    assigned_at = Column(DateTime, nullable=False)
    expected_return_date = Column(Date)
    returned_at = Column(DateTime)
    return_confirmed = Column(Boolean, default=False, nullable=False)
    notes = Column(Text)

    @property
    def is_active(self) -> bool:
        return self.returned_at is None

    def __repr__(self):
        return f"<PlateAssignment {self.id} plate={self.plate_id} type={self.assignment_type} active={self.is_active}>"


class PlateAlert(Base):
    __tablename__ = "plate_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_id = Column(Integer, ForeignKey("plates.id"), nullable=False, index=True)
    alert_type = Column(String(30), nullable=False, index=True)   # overdue_rental | expiring_buyer_tag | unaccounted
    severity = Column(String(10), nullable=False)                  # warning | urgent
    description = Column(Text)
    first_detected_at = Column(DateTime, nullable=False, index=True)
    last_notified_at = Column(DateTime)
    resolved_at = Column(DateTime)

    def __repr__(self):
        return f"<PlateAlert {self.id} type={self.alert_type} resolved={self.resolved_at is not None}>"
