# app/services/stages.py
"""
Stage catalog for the registration lifecycle.

    sale_complete -> documents_collected -> submitted_to_dmv ->
    dmv_processing -> sticker_ready -> sticker_delivered
    (+ rejected, branching from dmv_processing)

Every consumer (admin API, customer tracker, notifications) reads labels,
order and ownership from here instead of re-deriving them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RegistrationStage(str, Enum):
    SALE_COMPLETE = "sale_complete"
    DOCUMENTS_COLLECTED = "documents_collected"
    SUBMITTED_TO_DMV = "submitted_to_dmv"
    DMV_PROCESSING = "dmv_processing"
    STICKER_READY = "sticker_ready"
    STICKER_DELIVERED = "sticker_delivered"
    REJECTED = "rejected"


class StageOwnership(str, Enum):
    DEALER = "dealer"
    STATE = "state"
    CUSTOMER = "customer"


OWNERSHIP_LABELS = {
    StageOwnership.DEALER: "Triple J",
    StageOwnership.STATE: "State",
    StageOwnership.CUSTOMER: "Customer",
}


@dataclass(frozen=True)
class StageConfig:
    key: RegistrationStage
    label: str
    ownership: StageOwnership
    description: str
    order: int                  # 1..6; 0 for rejected
    expected_duration: Optional[str] = None

    @property
    def ownership_label(self) -> str:
        return OWNERSHIP_LABELS[self.ownership]


STAGES: dict[RegistrationStage, StageConfig] = {
    RegistrationStage.SALE_COMPLETE: StageConfig(
        RegistrationStage.SALE_COMPLETE, "Sale Complete", StageOwnership.DEALER,
        "Vehicle sold, plates assigned from dealer inventory.", 1, "Same day"),
    RegistrationStage.DOCUMENTS_COLLECTED: StageConfig(
        RegistrationStage.DOCUMENTS_COLLECTED, "Documents Collected", StageOwnership.DEALER,
        "All paperwork received (title, 130-U, insurance, inspection).", 2, "1-3 business days"),
    RegistrationStage.SUBMITTED_TO_DMV: StageConfig(
        RegistrationStage.SUBMITTED_TO_DMV, "Submitted to DMV", StageOwnership.DEALER,
        "Packet uploaded to webDEALER.", 3, "1-2 business days"),
    RegistrationStage.DMV_PROCESSING: StageConfig(
        RegistrationStage.DMV_PROCESSING, "DMV Processing", StageOwnership.STATE,
        "Awaiting DMV review.", 4, "5-10 business days"),
    RegistrationStage.STICKER_READY: StageConfig(
        RegistrationStage.STICKER_READY, "Sticker Ready", StageOwnership.DEALER,
        "Registration approved, sticker available for pickup/delivery.", 5, "1-2 business days"),
    RegistrationStage.STICKER_DELIVERED: StageConfig(
        RegistrationStage.STICKER_DELIVERED, "Sticker Delivered", StageOwnership.DEALER,
        "Customer received their sticker.", 6),
    RegistrationStage.REJECTED: StageConfig(
        RegistrationStage.REJECTED, "Rejected", StageOwnership.STATE,
        "DMV rejected submission. Review notes and resubmit.", 0, "1-3 business days"),
}

TOTAL_STAGES = 6

# rejected branches from dmv_processing and is drawn at its position
DISPLAY_ORDER_OVERRIDES = {RegistrationStage.REJECTED: STAGES[RegistrationStage.DMV_PROCESSING].order}

ORDERED_STAGES = sorted(
    (cfg for cfg in STAGES.values() if cfg.order > 0), key=lambda cfg: cfg.order
)

# Milestone column stamped the first time a stage is reached
MILESTONE_FIELDS = {
    RegistrationStage.SALE_COMPLETE: "sale_date",
    RegistrationStage.SUBMITTED_TO_DMV: "submission_date",
    RegistrationStage.STICKER_READY: "approval_date",
    RegistrationStage.STICKER_DELIVERED: "delivery_date",
}
MILESTONE_ORDER = ("sale_date", "submission_date", "approval_date", "delivery_date")


def get_stage_config(stage) -> StageConfig:
    """Look up a stage by enum member or raw string. Raises ValueError for unknown keys."""
    return STAGES[RegistrationStage(stage)]


def display_order(stage) -> int:
    stage = RegistrationStage(stage)
    return DISPLAY_ORDER_OVERRIDES.get(stage, STAGES[stage].order)


def progress_fraction(stage) -> float:
    """Progress-bar fill between 0 and 1."""
    return display_order(stage) / TOTAL_STAGES


def is_stage_complete(current, candidate) -> bool:
    """True if `candidate` is behind the registration's current position."""
    candidate = RegistrationStage(candidate)
    if candidate == RegistrationStage.REJECTED:
        return False
    current = RegistrationStage(current)
    if current == RegistrationStage.STICKER_DELIVERED:
        return True
    return STAGES[candidate].order < display_order(current)
