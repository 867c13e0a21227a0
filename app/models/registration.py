# app/models/registration.py
"""
Registrations table — one row per vehicle sale that needs title/registration
processing. Vehicle fields are denormalized at creation so the row survives
deletion of the inventory record.

Every mutation goes through registration_service, which bumps `version`
with a compare-and-swap update and appends a RegistrationAudit row.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey
from app.database import Base
from app.services.stages import RegistrationStage


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(20), unique=True, nullable=False, index=True)
    access_token = Column(String(64), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"))

    # Customer contact
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255))
    customer_phone = Column(String(30))
    customer_address = Column(Text)

    # Denormalized vehicle snapshot
    vin = Column(String(17), nullable=False, index=True)
    vehicle_year = Column(Integer, nullable=False)
    vehicle_make = Column(String(100), nullable=False)
    vehicle_model = Column(String(100), nullable=False)
    plate_number = Column(String(20))

    # Document checklist
    doc_title_front = Column(Boolean, default=False, nullable=False)
    doc_title_back = Column(Boolean, default=False, nullable=False)
    doc_130u = Column(Boolean, default=False, nullable=False)
    doc_insurance = Column(Boolean, default=False, nullable=False)
    doc_inspection = Column(Boolean, default=False, nullable=False)

    # Workflow state
    current_stage = Column(String(30), default=RegistrationStage.SALE_COMPLETE.value,
                           nullable=False, index=True)
    sale_date = Column(DateTime)
    submission_date = Column(DateTime)
    approval_date = Column(DateTime)
    delivery_date = Column(DateTime)
    rejection_notes = Column(Text)
    notes = Column(Text)

    notification_pref = Column(String(10), default="both", nullable=False)   # sms | email | both | none
    is_archived = Column(Boolean, default=False, nullable=False, index=True)
    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    @property
    def stage(self) -> RegistrationStage:
        return RegistrationStage(self.current_stage)

    @property
    def vehicle_description(self) -> str:
        return f"{self.vehicle_year} {self.vehicle_make} {self.vehicle_model}"

    def __repr__(self):
        return f"<Registration {self.order_id} stage={self.current_stage} v{self.version}>"
