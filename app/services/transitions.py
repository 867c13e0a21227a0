# app/services/transitions.py
"""
Transition validator for the registration lifecycle.
The adjacency table below is the only source of legal stage changes.
"""

from typing import Optional
from app.services.errors import IllegalTransitionError
from app.services.stages import RegistrationStage, get_stage_config

S = RegistrationStage

VALID_TRANSITIONS: dict[RegistrationStage, tuple[RegistrationStage, ...]] = {
    S.SALE_COMPLETE: (S.DOCUMENTS_COLLECTED,),
    S.DOCUMENTS_COLLECTED: (S.SUBMITTED_TO_DMV,),
    S.SUBMITTED_TO_DMV: (S.DMV_PROCESSING,),
    S.DMV_PROCESSING: (S.STICKER_READY, S.REJECTED),
    S.STICKER_READY: (S.STICKER_DELIVERED,),
    S.STICKER_DELIVERED: (),
    S.REJECTED: (S.SUBMITTED_TO_DMV,),
}

NOTES_REQUIRED = {S.REJECTED}


def _coerce(stage) -> Optional[RegistrationStage]:
    try:
        return RegistrationStage(stage)
    except ValueError:
        return None


def is_valid_transition(current, target) -> bool:
    current, target = _coerce(current), _coerce(target)
    if current is None or target is None:
        return False
    return target in VALID_TRANSITIONS[current]


def get_next_stages(current) -> list[RegistrationStage]:
    current = _coerce(current)
    return list(VALID_TRANSITIONS.get(current, ())) if current else []


def notes_required(target) -> bool:
    return _coerce(target) in NOTES_REQUIRED


def validate_transition(current, target, rejection_notes: Optional[str] = None) -> RegistrationStage:
    """
    Raise IllegalTransitionError unless current -> target is admissible.
    Returns the target as a RegistrationStage.
    """
    target_stage = _coerce(target)
    if target_stage is None:
        raise IllegalTransitionError(f"Unknown stage '{target}'", current=current, target=target)

    if not is_valid_transition(current, target_stage):
        allowed = ", ".join(s.value for s in get_next_stages(current)) or "none (terminal stage)"
        raise IllegalTransitionError(
            f"Cannot move from {get_stage_config(current).label} to "
            f"{get_stage_config(target_stage).label}. Allowed next stages: {allowed}",
            current=current, target=target_stage,
        )

    if notes_required(target_stage) and not (rejection_notes or "").strip():
        raise IllegalTransitionError(
            "Rejection notes are required when marking a registration as rejected",
            current=current, target=target_stage,
        )
    return target_stage
