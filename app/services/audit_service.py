# app/services/audit_service.py
"""
Audit trail recorder for registrations.
Append-only: rows are added inside the caller's transaction and never
updated or deleted (the model refuses both).
History is returned oldest first, ordered by (changed_at, id).
"""

from datetime import date, datetime
from typing import Any, Optional
from sqlalchemy.orm import Session
from app.models.registration_audit import RegistrationAudit
from app.utils.logger import get_logger

logger = get_logger(__name__)

OPERATIONS = ("INSERT", "UPDATE", "DELETE")

# Bookkeeping columns that never appear in a diff
IGNORED_FIELDS = {"version", "updated_at", "created_at"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):     # Enum members
        return value.value
    return value


def diff_fields(record, new_values: dict) -> dict:
    """Build a {field: {"old", "new"}} map for values that actually change."""
    diff = {}
    for field, new in new_values.items():
        if field in IGNORED_FIELDS:
            continue
        old = getattr(record, field, None)
        if _jsonable(old) != _jsonable(new):
            diff[field] = {"old": _jsonable(old), "new": _jsonable(new)}
    return diff


def record_audit(db: Session, registration_id: int, operation: str, changed_fields: dict,
                 reason: Optional[str] = None, actor: Optional[str] = None,
                 changed_at: Optional[datetime] = None) -> RegistrationAudit:
    """Append one audit row to the session. The caller commits."""
    if operation not in OPERATIONS:
        raise ValueError(f"Unknown audit operation '{operation}'")
    entry = RegistrationAudit(
        registration_id=registration_id,
        operation=operation,
        changed_fields=changed_fields,
        change_reason=reason,
        changed_by=actor or "system",
        changed_at=changed_at or datetime.utcnow(),
    )
    db.add(entry)
    logger.debug(f"[AUDIT] reg={registration_id} op={operation} fields={sorted(changed_fields)}")
    return entry


def get_history(db: Session, registration_id: int) -> list[RegistrationAudit]:
    return (
        db.query(RegistrationAudit)
        .filter(RegistrationAudit.registration_id == registration_id)
        .order_by(RegistrationAudit.changed_at.asc(), RegistrationAudit.id.asc())
        .all()
    )
