# app/routers/registrations.py
"""
Admin endpoints for the registration ledger.
Every write goes through registration_service; stage changes schedule the
customer notification as a background task once the change is committed.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Header
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.schemas.registration import (
    ArchiveRequest, AuditEntryOut, ChecklistUpdate, NotesUpdate, NotificationOut, PreferenceUpdate,
    RegistrationCreate, RegistrationOut, StageOut, StageUpdate,
)
from app.services import audit_service, registration_service
from app.services.notification_service import (
    BackgroundNotifier, NotificationDispatcher, get_dispatcher, get_notification_history,
)
from app.services.stages import ORDERED_STAGES, STAGES, RegistrationStage
from app.services.transitions import get_next_stages, notes_required

router = APIRouter()


def _stage_out(cfg) -> StageOut:
    return StageOut(
        key=cfg.key.value, label=cfg.label, ownership=cfg.ownership.value,
        ownership_label=cfg.ownership_label, description=cfg.description, order=cfg.order,
        expected_duration=cfg.expected_duration, requires_notes=notes_required(cfg.key),
        next_stages=[s.value for s in get_next_stages(cfg.key)],
    )


@router.get("/stages", response_model=list[StageOut], summary="Stage catalog")
def list_stages():
    """The six ordered stages followed by the rejected branch."""
    return [_stage_out(cfg) for cfg in ORDERED_STAGES] + [_stage_out(STAGES[RegistrationStage.REJECTED])]


@router.get("/registrations", response_model=list[RegistrationOut], summary="List registrations")
def list_registrations(search: Optional[str] = None, stage: Optional[str] = None,
                       include_archived: bool = False, limit: int = 100, offset: int = 0,
                       db: Session = Depends(get_db)):
    """stage: in_progress | complete | rejected | all | a single stage key."""
    return registration_service.list_registrations(
        db, search=search, stage_filter=stage, include_archived=include_archived, limit=limit, offset=offset,
    )


@router.post("/registrations", response_model=RegistrationOut, status_code=201, summary="Create a registration")
async def create_registration(body: RegistrationCreate, background_tasks: BackgroundTasks,
                              db: Session = Depends(get_db),
                              dispatcher: NotificationDispatcher = Depends(get_dispatcher),
                              actor: Optional[str] = Header(None, alias="X-Admin-User")):
    draft = body.model_dump(exclude={"notify_customer", "reason"})
    registration = registration_service.create_registration(db, draft, actor=actor, reason=body.reason)
    if body.notify_customer:
        notifier = BackgroundNotifier(background_tasks, dispatcher)
        await notifier.notify_stage_change(db, registration, None, RegistrationStage.SALE_COMPLETE)
    return registration


@router.get("/registrations/{registration_id}", response_model=RegistrationOut)
def get_registration(registration_id: int, db: Session = Depends(get_db)):
    return registration_service.get_registration(db, registration_id)


@router.put("/registrations/{registration_id}/stage", response_model=RegistrationOut,
            summary="Advance or reject a registration")
async def update_stage(registration_id: int, body: StageUpdate, background_tasks: BackgroundTasks,
                       db: Session = Depends(get_db),
                       dispatcher: NotificationDispatcher = Depends(get_dispatcher),
                       actor: Optional[str] = Header(None, alias="X-Admin-User")):
    """
    422 for an illegal stage change or missing rejection notes,
    409 when expected_version is stale or another admin got there first.
    """
    return await registration_service.update_stage(
        db, registration_id, body.target_stage,
        reason=body.reason, rejection_notes=body.rejection_notes,
        notify_customer=body.notify_customer, actor=actor,
        expected_version=body.expected_version,
        notifier=BackgroundNotifier(background_tasks, dispatcher),
    )


@router.get("/registrations/{registration_id}/next-stages", response_model=list[StageOut])
def next_stages(registration_id: int, db: Session = Depends(get_db)):
    registration = registration_service.get_registration(db, registration_id)
    return [_stage_out(STAGES[s]) for s in get_next_stages(registration.stage)]


@router.put("/registrations/{registration_id}/documents", response_model=RegistrationOut,
            summary="Update the document checklist")
def update_documents(registration_id: int, body: ChecklistUpdate, db: Session = Depends(get_db),
                     actor: Optional[str] = Header(None, alias="X-Admin-User")):
    checklist = body.model_dump(exclude={"reason", "expected_version"}, exclude_none=True)
    return registration_service.update_document_checklist(
        db, registration_id, checklist, reason=body.reason, actor=actor,
        expected_version=body.expected_version,
    )


@router.put("/registrations/{registration_id}/notes", response_model=RegistrationOut)
def update_notes(registration_id: int, body: NotesUpdate, db: Session = Depends(get_db),
                 actor: Optional[str] = Header(None, alias="X-Admin-User")):
    return registration_service.update_notes(db, registration_id, body.notes, reason=body.reason, actor=actor)


@router.put("/registrations/{registration_id}/notification-preference", response_model=RegistrationOut)
def update_preference(registration_id: int, body: PreferenceUpdate, db: Session = Depends(get_db),
                      actor: Optional[str] = Header(None, alias="X-Admin-User")):
    return registration_service.update_notification_preference(
        db, registration_id, body.notification_pref, reason=body.reason, actor=actor,
    )


@router.post("/registrations/{registration_id}/archive", response_model=RegistrationOut)
def archive(registration_id: int, body: ArchiveRequest = ArchiveRequest(), db: Session = Depends(get_db),
            actor: Optional[str] = Header(None, alias="X-Admin-User")):
    return registration_service.archive_registration(db, registration_id, reason=body.reason, actor=actor)


@router.post("/registrations/{registration_id}/restore", response_model=RegistrationOut)
def restore(registration_id: int, body: ArchiveRequest = ArchiveRequest(), db: Session = Depends(get_db),
            actor: Optional[str] = Header(None, alias="X-Admin-User")):
    return registration_service.restore_registration(db, registration_id, reason=body.reason, actor=actor)


@router.get("/registrations/{registration_id}/history", response_model=list[AuditEntryOut],
            summary="Audit trail, oldest first")
def history(registration_id: int, db: Session = Depends(get_db)):
    registration_service.get_registration(db, registration_id)
    return audit_service.get_history(db, registration_id)


@router.get("/registrations/{registration_id}/notifications", response_model=list[NotificationOut],
            summary="Notification attempts, newest first")
def notifications(registration_id: int, db: Session = Depends(get_db)):
    registration_service.get_registration(db, registration_id)
    return get_notification_history(db, registration_id)
