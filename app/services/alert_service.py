# app/services/alert_service.py
"""
Shared plate alert creation service.
Used by plate_service's scan. An unresolved alert of the same type for the
same plate suppresses a duplicate.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.plate import PlateAlert
from app.utils.logger import get_logger

logger = get_logger(__name__)


def find_open_alert(db: Session, plate_id: int, alert_type: str) -> Optional[PlateAlert]:
    return db.query(PlateAlert).filter(
        PlateAlert.plate_id == plate_id,
        PlateAlert.alert_type == alert_type,
        PlateAlert.resolved_at.is_(None),
    ).first()


def create_alert(db: Session, plate_id: int, alert_type: str, severity: str,
                 description: str) -> Optional[PlateAlert]:
    """Create and persist an alert unless an open one already exists. Always commits immediately."""
    existing = find_open_alert(db, plate_id, alert_type)
    if existing:
        # Escalate warning -> urgent in place; never downgrade
        if existing.severity != severity and severity == "urgent":
            existing.severity = severity
            existing.description = description
            db.commit()
        return None

    alert = PlateAlert(plate_id=plate_id, alert_type=alert_type, severity=severity,
                       description=description, first_detected_at=datetime.utcnow())
    db.add(alert)
    db.commit()
    logger.warning(f"[ALERT][{alert_type.upper()}] {description}")
    return alert


def resolve_alert(db: Session, alert_id: int) -> Optional[PlateAlert]:
    alert = db.query(PlateAlert).filter(PlateAlert.id == alert_id).first()
    if not alert:
        return None
    if alert.resolved_at is None:
        alert.resolved_at = datetime.utcnow()
        db.commit()
    return alert
