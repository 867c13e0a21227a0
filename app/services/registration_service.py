# app/services/registration_service.py
"""
Registration record store: the registration status ledger.

All writes go through _apply_update(): one compare-and-swap UPDATE keyed on
(id, version[, current_stage]) plus one audit row, committed together.
A CAS that matches zero rows means another request got there first and is
surfaced as WriteConflictError.

Stage changes are validated by transitions.validate_transition() before any
write. Customer notification happens after commit through an injected
dispatcher, so a failed send never rolls back the stage change.
"""

import secrets
from datetime import datetime
from typing import Optional, Protocol
from sqlalchemy import String, cast, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from app.config import settings
from app.models.registration import Registration
from app.models.vehicle import Vehicle
from app.services.audit_service import diff_fields, record_audit
from app.services.errors import (
    PersistenceUnavailableError, RegistrationError, RegistrationNotFoundError, WriteConflictError,
)
from app.services.stages import MILESTONE_FIELDS, MILESTONE_ORDER, RegistrationStage
from app.services.transitions import validate_transition
from app.utils.logger import get_logger

logger = get_logger(__name__)

DOCUMENT_FIELDS = ("doc_title_front", "doc_title_back", "doc_130u", "doc_insurance", "doc_inspection")
NOTIFICATION_PREFERENCES = ("sms", "email", "both", "none")

STAGE_BUCKETS = {
    "in_progress": lambda q: q.filter(Registration.current_stage.notin_(
        [RegistrationStage.STICKER_DELIVERED.value, RegistrationStage.REJECTED.value])),
    "complete": lambda q: q.filter(Registration.current_stage == RegistrationStage.STICKER_DELIVERED.value),
    "rejected": lambda q: q.filter(Registration.current_stage == RegistrationStage.REJECTED.value),
}

_SNAPSHOT_FIELDS = (
    "order_id", "vehicle_id", "customer_name", "customer_email", "customer_phone",
    "customer_address", "vin", "vehicle_year", "vehicle_make", "vehicle_model",
    "plate_number", "current_stage", "sale_date", "notification_pref",
) + DOCUMENT_FIELDS

STAGE_KEYS = frozenset(stage.value for stage in RegistrationStage)

_ORDER_ID_ATTEMPTS = 3


class StageChangeNotifier(Protocol):
    async def notify_stage_change(self, db: Session, registration: Registration,
                                  old_stage: RegistrationStage, new_stage: RegistrationStage,
                                  rejection_notes: Optional[str] = None) -> None:
        ...


# ── Reads ────────────────────────────────────────────────────────────────────

def get_registration(db: Session, registration_id: int) -> Registration:
    registration = db.query(Registration).filter(Registration.id == registration_id).first()
    if not registration:
        raise RegistrationNotFoundError(f"Registration {registration_id} not found")
    return registration


def list_registrations(db: Session, search: Optional[str] = None, stage_filter: Optional[str] = None,
                       include_archived: bool = False, limit: int = 100, offset: int = 0) -> list[Registration]:
    """
    Active registrations, newest first.
    stage_filter: in_progress | complete | rejected | any single stage key.
    search: case-insensitive substring of order id, customer name, VIN or "year make model".
    Reads degrade to an empty list when the store is unavailable.
    """
    q = db.query(Registration)
    if not include_archived:
        q = q.filter(Registration.is_archived.is_(False))

    if stage_filter and stage_filter != "all":
        if stage_filter in STAGE_BUCKETS:
            q = STAGE_BUCKETS[stage_filter](q)
        elif stage_filter in STAGE_KEYS:
            q = q.filter(Registration.current_stage == stage_filter)
        else:
            raise RegistrationError(f"Unknown stage filter '{stage_filter}'")

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        description = (cast(Registration.vehicle_year, String) + " " + Registration.vehicle_make
                       + " " + Registration.vehicle_model)
        q = q.filter(or_(
            Registration.order_id.ilike(pattern),
            Registration.customer_name.ilike(pattern),
            Registration.vin.ilike(pattern),
            description.ilike(pattern),
        ))

    try:
        return (q.order_by(Registration.created_at.desc(), Registration.id.desc())
                .offset(offset).limit(limit).all())
    except SQLAlchemyError as e:
        logger.error(f"Registration listing failed: {e}", exc_info=True)
        return []


# ── Create ───────────────────────────────────────────────────────────────────

def _next_order_id(db: Session, year: int) -> str:
    prefix = f"{settings.ORDER_ID_PREFIX}-{year}-"
    rows = db.query(Registration.order_id).filter(Registration.order_id.like(f"{prefix}%")).all()
    suffixes = [int(order_id[len(prefix):]) for (order_id,) in rows if order_id[len(prefix):].isdigit()]
    return f"{prefix}{max(suffixes, default=0) + 1:04d}"


def _is_order_id_collision(error: IntegrityError) -> bool:
    # sqlite names the column, postgres the unique index ix_registrations_order_id
    return "order_id" in str(error.orig)


def generate_access_token() -> str:
    # hex keeps the token free of "-" so /track/{orderId}-{token} splits cleanly
    return secrets.token_hex(16)


def create_registration(db: Session, draft: dict, actor: Optional[str] = None,
                        reason: Optional[str] = None) -> Registration:
    """
    Create a registration at sale_complete with sale_date stamped.
    When draft["vehicle_id"] is set, missing vehicle fields are copied from inventory.
    """
    data = {k: v for k, v in draft.items() if v is not None}

    if data.get("vehicle_id") is not None:
        vehicle = db.query(Vehicle).filter(Vehicle.id == data["vehicle_id"]).first()
        if not vehicle:
            raise RegistrationNotFoundError(f"Vehicle {data['vehicle_id']} not found")
        data.setdefault("vin", vehicle.vin)
        data.setdefault("vehicle_year", vehicle.year)
        data.setdefault("vehicle_make", vehicle.make)
        data.setdefault("vehicle_model", vehicle.model)

    missing = [f for f in ("customer_name", "vin", "vehicle_year", "vehicle_make", "vehicle_model") if not data.get(f)]
    if missing:
        raise RegistrationError(f"Missing required registration fields: {', '.join(missing)}")

    data["vin"] = data["vin"].strip().upper()
    notification_pref = data.pop("notification_pref", "both")
    if notification_pref not in NOTIFICATION_PREFERENCES:
        raise RegistrationError(f"Unknown notification preference '{notification_pref}'")

    for attempt in range(1, _ORDER_ID_ATTEMPTS + 1):
        now = datetime.utcnow()
        registration = Registration(
            **data,
            order_id=_next_order_id(db, now.year),
            access_token=generate_access_token(),
            current_stage=RegistrationStage.SALE_COMPLETE.value,
            sale_date=now,
            notification_pref=notification_pref,
            is_archived=False,
            version=1,
            created_at=now,
            updated_at=now,
        )
        for field in DOCUMENT_FIELDS:
            if getattr(registration, field) is None:
                setattr(registration, field, False)
        try:
            db.add(registration)
            db.flush()
            snapshot = diff_fields(Registration(), {f: getattr(registration, f) for f in _SNAPSHOT_FIELDS})
            record_audit(db, registration.id, "INSERT", snapshot,
                         reason=reason, actor=actor, changed_at=now)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if not _is_order_id_collision(e):
                logger.error(f"Registration create rejected by the store: {e.orig}")
                raise RegistrationError(f"Could not save the registration: {e.orig}") from e
            logger.warning(f"Order id collision on attempt {attempt}: {e.orig}")
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Registration create failed: {e}", exc_info=True)
            raise PersistenceUnavailableError("Could not save the registration. Please retry.") from e

        db.refresh(registration)
        logger.info(f"[LEDGER] Created {registration.order_id} for {registration.vehicle_description}")
        return registration

    raise WriteConflictError("Could not allocate a unique order id. Please retry.")


# ── Mutations ────────────────────────────────────────────────────────────────

def _apply_update(db: Session, registration: Registration, values: dict, *,
                  reason: Optional[str], actor: Optional[str],
                  expected_version: Optional[int] = None,
                  expected_stage: Optional[RegistrationStage] = None) -> dict:
    """Compare-and-swap `values` onto the row and append one audit entry. Returns the diff."""
    if expected_version is not None and expected_version != registration.version:
        raise WriteConflictError(
            f"{registration.order_id} was changed by someone else (version {registration.version}, "
            f"you had {expected_version}). Reload and try again."
        )

    changes = diff_fields(registration, values)
    if not changes:
        return changes

    now = datetime.utcnow()
    conditions = [Registration.id == registration.id, Registration.version == registration.version]
    if expected_stage is not None:
        conditions.append(Registration.current_stage == expected_stage.value)

    order_id = registration.order_id
    try:
        result = db.execute(
            update(Registration)
            .where(*conditions)
            .values(**values, version=registration.version + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.warning(f"[LEDGER] Write conflict on {order_id}")
            raise WriteConflictError(f"{order_id} was changed by someone else. Reload and try again.")
        record_audit(db, registration.id, "UPDATE", changes, reason=reason, actor=actor, changed_at=now)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[LEDGER] Update of {order_id} failed: {e}", exc_info=True)
        raise PersistenceUnavailableError(f"Could not save changes to {order_id}. Please retry.") from e

    db.refresh(registration)
    return changes


def _stamp_milestone(registration: Registration, now: datetime) -> datetime:
    """Never stamp earlier than a milestone that is already set."""
    earlier = [getattr(registration, f) for f in MILESTONE_ORDER if getattr(registration, f) is not None]
    return max([now, *earlier])


async def update_stage(db: Session, registration_id: int, target_stage, *,
                       reason: Optional[str] = None, rejection_notes: Optional[str] = None,
                       notify_customer: bool = True, actor: Optional[str] = None,
                       expected_version: Optional[int] = None,
                       notifier: Optional[StageChangeNotifier] = None) -> Registration:
    registration = get_registration(db, registration_id)
    current = registration.stage
    target = validate_transition(current, target_stage, rejection_notes)

    values = {"current_stage": target.value}
    milestone = MILESTONE_FIELDS.get(target)
    if milestone and getattr(registration, milestone) is None:
        values[milestone] = _stamp_milestone(registration, datetime.utcnow())
    if target == RegistrationStage.REJECTED:
        values["rejection_notes"] = rejection_notes.strip()
    elif current == RegistrationStage.REJECTED:
        values["rejection_notes"] = None

    _apply_update(db, registration, values, reason=reason, actor=actor,
                  expected_version=expected_version, expected_stage=current)
    logger.info(f"[LEDGER] {registration.order_id}: {current.value} → {target.value} by {actor or 'system'}")

    if notify_customer and notifier is not None:
        try:
            await notifier.notify_stage_change(db, registration, current, target,
                                               rejection_notes=values.get("rejection_notes"))
        except Exception as e:
            logger.warning(f"[LEDGER] Notification for {registration.order_id} failed: {e}", exc_info=True)
    return registration


def update_document_checklist(db: Session, registration_id: int, checklist: dict,
                              reason: Optional[str] = None, actor: Optional[str] = None,
                              expected_version: Optional[int] = None) -> Registration:
    unknown = set(checklist) - set(DOCUMENT_FIELDS)
    if unknown:
        raise RegistrationError(f"Unknown document fields: {', '.join(sorted(unknown))}")
    registration = get_registration(db, registration_id)
    values = {field: bool(value) for field, value in checklist.items() if value is not None}
    _apply_update(db, registration, values, reason=reason, actor=actor, expected_version=expected_version)
    return registration


def update_notes(db: Session, registration_id: int, notes: Optional[str],
                 reason: Optional[str] = None, actor: Optional[str] = None) -> Registration:
    registration = get_registration(db, registration_id)
    _apply_update(db, registration, {"notes": notes}, reason=reason, actor=actor)
    return registration


def update_notification_preference(db: Session, registration_id: int, preference: str,
                                   reason: Optional[str] = None, actor: Optional[str] = None) -> Registration:
    if preference not in NOTIFICATION_PREFERENCES:
        raise RegistrationError(f"Unknown notification preference '{preference}'")
    registration = get_registration(db, registration_id)
    _apply_update(db, registration, {"notification_pref": preference}, reason=reason, actor=actor)
    return registration


def archive_registration(db: Session, registration_id: int, reason: Optional[str] = None,
                         actor: Optional[str] = None) -> Registration:
    registration = get_registration(db, registration_id)
    _apply_update(db, registration, {"is_archived": True}, reason=reason, actor=actor)
    logger.info(f"[LEDGER] Archived {registration.order_id}")
    return registration


def restore_registration(db: Session, registration_id: int, reason: Optional[str] = None,
                         actor: Optional[str] = None) -> Registration:
    registration = get_registration(db, registration_id)
    _apply_update(db, registration, {"is_archived": False}, reason=reason, actor=actor)
    return registration


def documents_complete(registration: Registration) -> bool:
    return all(getattr(registration, field) for field in DOCUMENT_FIELDS)
