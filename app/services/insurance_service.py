# app/services/insurance_service.py
"""
Rental insurance capture and verification.

validate_insurance_coverage() is pure: it checks a policy against the state
minimums (30/60/25 by default) and the booking's dates. The computed flags
are stored on the RentalInsurance row; an admin then marks the row verified,
failed or overridden. Failing or overriding needs a note.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.models.rental import RentalBooking, RentalInsurance
from app.services.errors import RegistrationError, RegistrationNotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

VERIFICATION_STATUSES = ("pending", "verified", "failed", "overridden")

_EDITABLE_FIELDS = (
    "insurance_company", "policy_number", "effective_date", "expiration_date",
    "bodily_injury_per_person", "bodily_injury_per_accident", "property_damage", "card_image_url",
)


@dataclass
class InsuranceFlags:
    has_required_fields: bool
    coverage_meets_minimum: bool
    policy_not_expired: bool
    no_expiry_during_rental: bool
    card_image_uploaded: bool

    @property
    def all_passed(self) -> bool:
        return all((self.has_required_fields, self.coverage_meets_minimum, self.policy_not_expired,
                    self.no_expiry_during_rental, self.card_image_uploaded))


def validate_insurance_coverage(insurance_company: Optional[str], policy_number: Optional[str],
                                expiration_date: Optional[date],
                                bodily_injury_per_person: Optional[int],
                                bodily_injury_per_accident: Optional[int],
                                property_damage: Optional[int],
                                card_image_url: Optional[str],
                                rental_end_date: Optional[date] = None,
                                today: Optional[date] = None) -> InsuranceFlags:
    today = today or date.today()
    coverage_ok = (
        (bodily_injury_per_person or 0) >= settings.INSURANCE_MIN_BODILY_INJURY_PER_PERSON
        and (bodily_injury_per_accident or 0) >= settings.INSURANCE_MIN_BODILY_INJURY_PER_ACCIDENT
        and (property_damage or 0) >= settings.INSURANCE_MIN_PROPERTY_DAMAGE
    )
    return InsuranceFlags(
        has_required_fields=bool(insurance_company and policy_number and expiration_date),
        coverage_meets_minimum=coverage_ok,
        policy_not_expired=expiration_date is not None and expiration_date >= today,
        no_expiry_during_rental=(expiration_date is not None
                                 and (rental_end_date is None or expiration_date >= rental_end_date)),
        card_image_uploaded=bool(card_image_url),
    )


def _flags_for(insurance: RentalInsurance, booking: RentalBooking) -> InsuranceFlags:
    return validate_insurance_coverage(
        insurance.insurance_company, insurance.policy_number, insurance.expiration_date,
        insurance.bodily_injury_per_person, insurance.bodily_injury_per_accident,
        insurance.property_damage, insurance.card_image_url, rental_end_date=booking.end_date,
    )


def _apply_flags(insurance: RentalInsurance, booking: RentalBooking) -> InsuranceFlags:
    flags = _flags_for(insurance, booking)
    insurance.coverage_meets_minimum = flags.coverage_meets_minimum
    insurance.expires_during_rental = not flags.no_expiry_during_rental
    return flags


def _get_booking(db: Session, booking_id: int) -> RentalBooking:
    booking = db.query(RentalBooking).filter(RentalBooking.id == booking_id).first()
    if not booking:
        raise RegistrationNotFoundError(f"Booking {booking_id} not found")
    return booking


def get_insurance(db: Session, insurance_id: int) -> RentalInsurance:
    insurance = db.query(RentalInsurance).filter(RentalInsurance.id == insurance_id).first()
    if not insurance:
        raise RegistrationNotFoundError(f"Insurance record {insurance_id} not found")
    return insurance


def get_insurance_for_booking(db: Session, booking_id: int) -> Optional[RentalInsurance]:
    """Most recent insurance record for the booking, or None."""
    return (
        db.query(RentalInsurance)
        .filter(RentalInsurance.booking_id == booking_id)
        .order_by(RentalInsurance.created_at.desc(), RentalInsurance.id.desc())
        .first()
    )


def create_insurance(db: Session, booking_id: int, data: dict) -> RentalInsurance:
    booking = _get_booking(db, booking_id)
    now = datetime.utcnow()
    insurance = RentalInsurance(
        booking_id=booking.id,
        **{k: data.get(k) for k in _EDITABLE_FIELDS},
        verification_status="pending", created_at=now, updated_at=now,
    )
    flags = _apply_flags(insurance, booking)
    db.add(insurance)
    db.commit()
    db.refresh(insurance)
    logger.info(f"[INSURANCE] Captured policy for {booking.booking_id} (all checks passed: {flags.all_passed})")
    return insurance


def update_insurance(db: Session, insurance_id: int, changes: dict) -> RentalInsurance:
    """Editing policy details recomputes the flags and puts the record back to pending."""
    insurance = get_insurance(db, insurance_id)
    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise RegistrationError(f"Unknown insurance fields: {', '.join(sorted(unknown))}")
    for field, value in changes.items():
        setattr(insurance, field, value)
    _apply_flags(insurance, _get_booking(db, insurance.booking_id))
    insurance.verification_status = "pending"
    insurance.verified_by = None
    insurance.verified_at = None
    insurance.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(insurance)
    return insurance


def _set_status(db: Session, insurance_id: int, status: str, verified_by: str,
                notes: Optional[str]) -> RentalInsurance:
    insurance = get_insurance(db, insurance_id)
    now = datetime.utcnow()
    insurance.verification_status = status
    insurance.verified_by = verified_by
    insurance.verified_at = now
    insurance.verification_notes = notes
    insurance.updated_at = now
    db.commit()
    db.refresh(insurance)
    logger.info(f"[INSURANCE] Record {insurance.id} marked {status} by {verified_by}")
    return insurance


def verify_insurance(db: Session, insurance_id: int, verified_by: str,
                     notes: Optional[str] = None) -> RentalInsurance:
    return _set_status(db, insurance_id, "verified", verified_by, notes)


def fail_insurance(db: Session, insurance_id: int, verified_by: str, notes: Optional[str]) -> RentalInsurance:
    if not notes or not notes.strip():
        raise RegistrationError("A note is required when failing an insurance verification")
    return _set_status(db, insurance_id, "failed", verified_by, notes.strip())


def override_insurance(db: Session, insurance_id: int, verified_by: str, notes: Optional[str]) -> RentalInsurance:
    if not notes or not notes.strip():
        raise RegistrationError("A note is required when overriding an insurance verification")
    return _set_status(db, insurance_id, "overridden", verified_by, notes.strip())
