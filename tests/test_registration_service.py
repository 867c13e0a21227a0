# tests/test_registration_service.py
"""Integration tests for the registration ledger against an in-memory store."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import IntegrityError
from app.models.registration import Registration
from app.models.registration_notification import RegistrationNotification
from app.services import registration_service
from app.services.audit_service import get_history
from app.services.errors import (
    IllegalTransitionError, RegistrationError, RegistrationNotFoundError, WriteConflictError,
)
from app.services.registration_service import update_stage
from app.services.stages import RegistrationStage
from app.services.vehicle_service import create_vehicle

HAPPY_PATH = ["documents_collected", "submitted_to_dmv", "dmv_processing", "sticker_ready", "sticker_delivered"]


class TestCreate:
    def test_new_registration_starts_at_sale_complete(self, db, make_registration):
        reg = make_registration()
        assert reg.current_stage == "sale_complete"
        assert reg.sale_date is not None
        assert reg.version == 1
        assert reg.vin == "1HGCM82633A004352"
        assert reg.order_id.startswith("TJ-") and reg.order_id.endswith("-0001")
        assert "-" not in reg.access_token and len(reg.access_token) == 32

        history = get_history(db, reg.id)
        assert [h.operation for h in history] == ["INSERT"]
        assert history[0].changed_fields["current_stage"] == {"old": None, "new": "sale_complete"}
        assert history[0].changed_by == "admin@dealer"

    def test_order_ids_increment(self, make_registration):
        first, second = make_registration(), make_registration(customer_name="Second Buyer")
        assert int(second.order_id.rsplit("-", 1)[1]) == int(first.order_id.rsplit("-", 1)[1]) + 1
        assert first.access_token != second.access_token

    def test_vehicle_prefill(self, db, make_registration):
        vehicle = create_vehicle(db, {"vin": "5yjsa1e26hf000001", "year": 2017, "make": "Tesla", "model": "Model S"})
        reg = make_registration(vin=None, vehicle_year=None, vehicle_make=None, vehicle_model=None,
                                vehicle_id=vehicle.id)
        assert reg.vin == "5YJSA1E26HF000001"
        assert reg.vehicle_description == "2017 Tesla Model S"

    def test_missing_fields_rejected(self, make_registration):
        with pytest.raises(RegistrationError):
            make_registration(vin=None)

    def test_unknown_vehicle(self, make_registration):
        with pytest.raises(RegistrationNotFoundError):
            make_registration(vehicle_id=999)

    def test_order_id_collision_retries_then_conflicts(self, make_registration):
        error = IntegrityError("INSERT INTO registrations", {},
                               Exception("UNIQUE constraint failed: registrations.order_id"))
        with patch.object(registration_service, "record_audit", side_effect=error) as record:
            with pytest.raises(WriteConflictError):
                make_registration()
        assert record.call_count == 3

    def test_other_integrity_errors_are_not_retried(self, db, make_registration):
        error = IntegrityError("INSERT INTO registration_audit", {},
                               Exception("NOT NULL constraint failed: registration_audit.operation"))
        with patch.object(registration_service, "record_audit", side_effect=error) as record:
            with pytest.raises(RegistrationError) as exc_info:
                make_registration()
        assert not isinstance(exc_info.value, WriteConflictError)
        assert record.call_count == 1
        assert db.query(Registration).count() == 0


class TestStageChanges:
    @pytest.mark.asyncio
    async def test_skipping_a_stage_leaves_record_untouched(self, db, make_registration):
        reg = make_registration()
        with pytest.raises(IllegalTransitionError):
            await update_stage(db, reg.id, "dmv_processing")
        db.refresh(reg)
        assert reg.current_stage == "sale_complete"
        assert reg.version == 1
        assert len(get_history(db, reg.id)) == 1

    @pytest.mark.asyncio
    async def test_full_path_audits_and_notifies(self, db, make_registration, dispatcher, sms_sender):
        reg = make_registration(notification_pref="sms")
        for stage in HAPPY_PATH:
            await update_stage(db, reg.id, stage, actor="admin@dealer", notifier=dispatcher)

        db.refresh(reg)
        assert reg.current_stage == "sticker_delivered"
        assert reg.version == 6
        assert reg.sale_date <= reg.submission_date <= reg.approval_date <= reg.delivery_date

        history = get_history(db, reg.id)
        assert [h.operation for h in history] == ["INSERT"] + ["UPDATE"] * 5
        assert [h.changed_fields["current_stage"]["new"] for h in history[1:]] == HAPPY_PATH

        rows = db.query(RegistrationNotification).filter_by(registration_id=reg.id).all()
        assert len(rows) == 5
        assert all(r.channel == "sms" and r.delivered for r in rows)
        assert len(sms_sender.sent) == 5

    @pytest.mark.asyncio
    async def test_reject_and_resubmit(self, db, make_registration):
        reg = make_registration()
        for stage in HAPPY_PATH[:3]:
            await update_stage(db, reg.id, stage)
        submitted_at = reg.submission_date

        await update_stage(db, reg.id, "rejected", rejection_notes="VIN mismatch on title")
        assert reg.current_stage == "rejected"
        assert reg.rejection_notes == "VIN mismatch on title"

        await update_stage(db, reg.id, "submitted_to_dmv")
        assert reg.current_stage == "submitted_to_dmv"
        assert reg.rejection_notes is None
        assert reg.submission_date == submitted_at

        resubmit = get_history(db, reg.id)[-1]
        assert resubmit.changed_fields["rejection_notes"] == {"old": "VIN mismatch on title", "new": None}

    @pytest.mark.asyncio
    async def test_stale_expected_version_conflicts(self, db, make_registration):
        reg = make_registration()
        await update_stage(db, reg.id, "documents_collected", expected_version=1)
        with pytest.raises(WriteConflictError):
            await update_stage(db, reg.id, "submitted_to_dmv", expected_version=1)
        db.refresh(reg)
        assert reg.current_stage == "documents_collected"
        assert reg.version == 2

    @pytest.mark.asyncio
    async def test_concurrent_writer_loses(self, db, session_factory, make_registration):
        reg = make_registration()
        other = session_factory()
        try:
            stale = other.query(Registration).filter(Registration.id == reg.id).one()
            assert stale.version == 1
            await update_stage(db, reg.id, "documents_collected")
            with pytest.raises(WriteConflictError):
                registration_service._apply_update(other, stale, {"notes": "late write"},
                                                   reason=None, actor="second-admin")
        finally:
            other.close()
        assert [h.operation for h in get_history(db, reg.id)] == ["INSERT", "UPDATE"]

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_stage_change(self, db, make_registration):
        reg = make_registration()
        notifier = AsyncMock()
        notifier.notify_stage_change.side_effect = RuntimeError("provider down")
        await update_stage(db, reg.id, "documents_collected", notifier=notifier)
        db.refresh(reg)
        assert reg.current_stage == "documents_collected"
        notifier.notify_stage_change.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_notify_customer_false_skips_notifier(self, db, make_registration):
        reg = make_registration()
        notifier = AsyncMock()
        await update_stage(db, reg.id, "documents_collected", notify_customer=False, notifier=notifier)
        notifier.notify_stage_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_registration(self, db):
        with pytest.raises(RegistrationNotFoundError):
            await update_stage(db, 404, "documents_collected")


class TestOtherMutations:
    def test_checklist_diff_only_changed_flags(self, db, make_registration):
        reg = make_registration(doc_title_front=True)
        registration_service.update_document_checklist(
            db, reg.id, {"doc_title_front": True, "doc_130u": True, "doc_insurance": True}, reason="Docs in",
        )
        entry = get_history(db, reg.id)[-1]
        assert set(entry.changed_fields) == {"doc_130u", "doc_insurance"}
        assert entry.change_reason == "Docs in"
        assert reg.version == 2

    def test_checklist_noop_writes_nothing(self, db, make_registration):
        reg = make_registration()
        registration_service.update_document_checklist(db, reg.id, {"doc_130u": False})
        assert len(get_history(db, reg.id)) == 1
        assert reg.version == 1

    def test_checklist_unknown_field(self, db, make_registration):
        reg = make_registration()
        with pytest.raises(RegistrationError):
            registration_service.update_document_checklist(db, reg.id, {"doc_passport": True})

    def test_documents_complete(self, db, make_registration):
        reg = make_registration()
        assert not registration_service.documents_complete(reg)
        registration_service.update_document_checklist(
            db, reg.id, {f: True for f in registration_service.DOCUMENT_FIELDS})
        assert registration_service.documents_complete(reg)

    def test_archive_and_restore(self, db, make_registration):
        reg = make_registration()
        registration_service.archive_registration(db, reg.id, reason="Duplicate entry")
        assert reg.is_archived
        assert registration_service.list_registrations(db) == []
        assert registration_service.list_registrations(db, include_archived=True) == [reg]
        registration_service.restore_registration(db, reg.id)
        assert not reg.is_archived
        assert [h.operation for h in get_history(db, reg.id)] == ["INSERT", "UPDATE", "UPDATE"]

    def test_invalid_preference(self, db, make_registration):
        reg = make_registration()
        with pytest.raises(RegistrationError):
            registration_service.update_notification_preference(db, reg.id, "pigeon")

    def test_update_notes(self, db, make_registration):
        reg = make_registration()
        registration_service.update_notes(db, reg.id, "Customer prefers pickup", actor="admin@dealer")
        entry = get_history(db, reg.id)[-1]
        assert entry.changed_fields == {"notes": {"old": None, "new": "Customer prefers pickup"}}


class TestListing:
    @pytest.mark.asyncio
    async def test_filters_and_search(self, db, make_registration):
        honda = make_registration()
        ford = make_registration(customer_name="James Carter", vin="1FTFW1ET5DFC10312",
                                 vehicle_year=2019, vehicle_make="Ford", vehicle_model="F-150")
        for stage in HAPPY_PATH:
            await update_stage(db, ford.id, stage)

        assert registration_service.list_registrations(db, stage_filter="in_progress") == [honda]
        assert registration_service.list_registrations(db, stage_filter="complete") == [ford]
        assert registration_service.list_registrations(db, stage_filter="rejected") == []
        assert registration_service.list_registrations(db, stage_filter="sale_complete") == [honda]
        assert len(registration_service.list_registrations(db, stage_filter="all")) == 2

        assert registration_service.list_registrations(db, search="carter") == [ford]
        assert registration_service.list_registrations(db, search="2021 honda") == [honda]
        assert registration_service.list_registrations(db, search="dfc10312") == [ford]
        assert registration_service.list_registrations(db, search=honda.order_id) == [honda]

    def test_unknown_stage_filter_is_rejected(self, db, make_registration):
        make_registration()
        with pytest.raises(RegistrationError, match="Unknown stage filter 'pending'"):
            registration_service.list_registrations(db, stage_filter="pending")
