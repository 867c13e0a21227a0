# app/services/tracker_service.py
"""
Customer-facing registration tracker.

The shareable link /track/{orderId}-{accessToken} is the only credential:
resolve() needs an exact order id AND token match and returns a reduced,
customer-safe view. Unknown order, wrong token and archived rows all come
back as None so callers cannot tell them apart; the reason is only logged.
"""

import hmac
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.registration import Registration
from app.services.stages import (
    ORDERED_STAGES, RegistrationStage, display_order, get_stage_config, is_stage_complete,
    progress_fraction,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TimelineStep:
    key: str
    label: str
    status: str            # complete | current | upcoming | rejected


@dataclass
class TrackerView:
    order_id: str
    vehicle: str
    plate_number: Optional[str]
    current_stage: str
    stage_label: str
    stage_description: str
    ownership_label: str
    expected_duration: Optional[str]
    stage_number: int
    progress_percent: int
    sale_date: Optional[datetime]
    submission_date: Optional[datetime]
    approval_date: Optional[datetime]
    delivery_date: Optional[datetime]
    rejection_notes: Optional[str] = None
    timeline: list[TimelineStep] = field(default_factory=list)


def parse_access_key(access_key: str) -> Optional[tuple[str, str]]:
    """Split "TJ-2026-0001-<token>" into (order id, token). Tokens contain no '-'."""
    order_id, sep, token = (access_key or "").strip().rpartition("-")
    if not sep or not order_id or not token:
        return None
    return order_id.upper(), token


def _timeline(registration: Registration) -> list[TimelineStep]:
    current = registration.stage
    steps = []
    for cfg in ORDERED_STAGES:
        if cfg.key == current:
            status = "current"
        elif current == RegistrationStage.REJECTED and cfg.key == RegistrationStage.DMV_PROCESSING:
            status = "rejected"
        elif is_stage_complete(current, cfg.key):
            status = "complete"
        else:
            status = "upcoming"
        steps.append(TimelineStep(cfg.key.value, cfg.label, status))
    return steps


def build_view(registration: Registration) -> TrackerView:
    stage = registration.stage
    cfg = get_stage_config(stage)
    return TrackerView(
        order_id=registration.order_id,
        vehicle=registration.vehicle_description,
        plate_number=registration.plate_number,
        current_stage=stage.value,
        stage_label=cfg.label,
        stage_description=cfg.description,
        ownership_label=cfg.ownership_label,
        expected_duration=cfg.expected_duration,
        stage_number=display_order(stage),
        progress_percent=int(round(progress_fraction(stage) * 100)),
        sale_date=registration.sale_date,
        submission_date=registration.submission_date,
        approval_date=registration.approval_date,
        delivery_date=registration.delivery_date,
        rejection_notes=registration.rejection_notes if stage == RegistrationStage.REJECTED else None,
        timeline=_timeline(registration),
    )


def resolve(db: Session, order_id: str, token: str) -> Optional[TrackerView]:
    registration = (
        db.query(Registration)
        .filter(Registration.order_id == (order_id or "").upper(), Registration.is_archived.is_(False))
        .first()
    )
    if registration is None:
        logger.info(f"[TRACKER] Unknown order {order_id}")
        return None
    if not hmac.compare_digest(registration.access_token.encode(), (token or "").encode()):
        logger.warning(f"[TRACKER] Token mismatch for order {order_id}")
        return None
    return build_view(registration)


def resolve_access_key(db: Session, access_key: str) -> Optional[TrackerView]:
    parsed = parse_access_key(access_key)
    if parsed is None:
        logger.info("[TRACKER] Malformed access key")
        return None
    return resolve(db, *parsed)
