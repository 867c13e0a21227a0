# tests/test_notification_service.py
"""Unit tests for customer notification dispatch and one-click unsubscribe."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from conftest import FakeSender
from app.services import notification_service
from app.services.audit_service import get_history
from app.services.notification_service import (
    BackgroundNotifier, NotificationDispatcher, compose_email, compose_sms, compose_subject,
    get_notification_history, tracking_url, unsubscribe, unsubscribe_url,
)
from app.services.registration_service import update_notification_preference, update_stage
from app.services.stages import RegistrationStage

S = RegistrationStage


class TestCompose:
    def test_sms_contains_stage_and_tracking_link(self, make_registration):
        reg = make_registration()
        body = compose_sms(reg, S.SUBMITTED_TO_DMV)
        assert "Submitted to DMV" in body
        assert f"/track/{reg.order_id}-{reg.access_token}" in body
        assert tracking_url(reg) in body

    def test_rejection_subject(self):
        assert compose_subject(S.REJECTED).startswith("Attention Required")
        assert compose_subject(S.STICKER_READY) == "Registration Update - Sticker Ready"

    def test_every_stage_has_customer_copy(self):
        assert set(notification_service.CUSTOMER_MESSAGES) == set(S)

    def test_email_escapes_customer_fields(self, make_registration):
        reg = make_registration(customer_name="<b>Maria</b>")
        body = compose_email(reg, S.STICKER_READY)
        assert "Hi &lt;b&gt;Maria&lt;/b&gt;," in body
        assert "<b>Maria" not in body
        assert "Sticker Ready" in body
        assert unsubscribe_url(reg).replace("&", "&amp;") in body

    def test_rejection_email_prefers_given_notes(self, make_registration):
        reg = make_registration(rejection_notes="stale notes")
        body = compose_email(reg, S.REJECTED, rejection_notes="Title signature missing")
        assert "Title signature missing" in body
        assert "stale notes" not in body


class TestDispatch:
    @pytest.mark.asyncio
    async def test_both_sends_sms_and_email(self, db, make_registration, dispatcher, sms_sender, email_sender):
        reg = make_registration(notification_pref="both")
        rows = await dispatcher.notify_stage_change(db, reg, S.SALE_COMPLETE, S.DOCUMENTS_COLLECTED)
        assert [r.channel for r in rows] == ["sms", "email"]
        assert all(r.delivered for r in rows)
        assert rows[0].old_stage == "sale_complete" and rows[0].new_stage == "documents_collected"
        assert email_sender.sent[0]["subject"] == "Registration Update - Documents Collected"
        assert "Unsubscribe" in email_sender.sent[0]["body"]

    @pytest.mark.asyncio
    async def test_none_preference_sends_nothing(self, db, make_registration, dispatcher, sms_sender, email_sender):
        reg = make_registration(notification_pref="none")
        rows = await dispatcher.notify_stage_change(db, reg, S.SALE_COMPLETE, S.DOCUMENTS_COLLECTED)
        assert rows == []
        assert sms_sender.sent == [] and email_sender.sent == []
        assert get_notification_history(db, reg.id) == []

    @pytest.mark.asyncio
    async def test_sms_failure_falls_back_to_email(self, db, make_registration, email_sender):
        dispatcher = NotificationDispatcher(FakeSender("sms", delivered=False, error="Invalid 'To' number"),
                                            email_sender)
        reg = make_registration(notification_pref="sms")
        rows = await dispatcher.notify_stage_change(db, reg, S.DMV_PROCESSING, S.STICKER_READY)
        assert [(r.channel, r.delivered) for r in rows] == [("sms", False), ("email", True)]
        assert rows[0].delivery_error == "Invalid 'To' number"
        assert rows[1].template_used == "stage_update_email_fallback"

    @pytest.mark.asyncio
    async def test_no_fallback_without_email(self, db, make_registration):
        dispatcher = NotificationDispatcher(FakeSender("sms", delivered=False), FakeSender("email"))
        reg = make_registration(notification_pref="sms", customer_email=None)
        rows = await dispatcher.notify_stage_change(db, reg, S.DMV_PROCESSING, S.STICKER_READY)
        assert [r.channel for r in rows] == ["sms"]

    @pytest.mark.asyncio
    async def test_missing_phone_recorded_as_failure(self, db, make_registration, dispatcher, sms_sender):
        reg = make_registration(notification_pref="both", customer_phone=None)
        rows = await dispatcher.notify_stage_change(db, reg, S.SALE_COMPLETE, S.DOCUMENTS_COLLECTED)
        sms_row = rows[0]
        assert sms_row.channel == "sms" and not sms_row.delivered
        assert "No sms contact" in sms_row.delivery_error
        assert sms_sender.sent == []
        assert rows[1].channel == "email" and rows[1].delivered

    @pytest.mark.asyncio
    async def test_sender_exception_is_recorded(self, db, make_registration):
        dispatcher = NotificationDispatcher(FakeSender("sms", raises=RuntimeError("socket closed")),
                                            FakeSender("email"))
        reg = make_registration(notification_pref="sms", customer_email=None)
        rows = await dispatcher.notify_stage_change(db, reg, S.SALE_COMPLETE, S.DOCUMENTS_COLLECTED)
        assert len(rows) == 1
        assert rows[0].delivery_error == "socket closed"
        assert get_notification_history(db, reg.id)[0].id == rows[0].id

    @pytest.mark.asyncio
    async def test_rejection_uses_rejection_templates(self, db, make_registration, dispatcher, email_sender):
        reg = make_registration(notification_pref="email", rejection_notes="Missing odometer statement")
        rows = await dispatcher.notify_stage_change(db, reg, S.DMV_PROCESSING, S.REJECTED)
        assert rows[0].template_used == "rejection_email"
        assert "Missing odometer statement" in email_sender.sent[0]["body"]

    @pytest.mark.asyncio
    async def test_background_rejection_email_keeps_notes_after_resubmit(self, db, make_registration,
                                                                       dispatcher, email_sender):
        reg = make_registration(notification_pref="email")
        for stage in ("documents_collected", "submitted_to_dmv", "dmv_processing"):
            await update_stage(db, reg.id, stage)
        tasks = MagicMock()
        await update_stage(db, reg.id, "rejected", rejection_notes="Missing odometer statement",
                           notifier=BackgroundNotifier(tasks, dispatcher))
        await update_stage(db, reg.id, "submitted_to_dmv")
        assert reg.rejection_notes is None

        task, *args = tasks.add_task.call_args.args
        await task(*args)
        assert len(email_sender.sent) == 1
        assert "Missing odometer statement" in email_sender.sent[0]["body"]
        assert get_notification_history(db, reg.id)[0].template_used == "rejection_email"

    @pytest.mark.asyncio
    async def test_verification_code_ignores_none(self, db, make_registration, dispatcher, sms_sender):
        reg = make_registration(notification_pref="none")
        row = await dispatcher.send_verification_code(db, reg, "482913")
        assert row.delivered
        assert row.template_used == "verification_code"
        assert "482913" in sms_sender.sent[0]["body"]

    @pytest.mark.asyncio
    async def test_history_newest_first(self, db, make_registration, dispatcher):
        reg = make_registration(notification_pref="sms")
        await dispatcher.notify_stage_change(db, reg, S.SALE_COMPLETE, S.DOCUMENTS_COLLECTED)
        await dispatcher.notify_stage_change(db, reg, S.DOCUMENTS_COLLECTED, S.SUBMITTED_TO_DMV)
        history = get_notification_history(db, reg.id)
        assert [h.new_stage for h in history] == ["submitted_to_dmv", "documents_collected"]


class TestUnsubscribe:
    def test_unsubscribe_sets_none_and_audits(self, db, make_registration):
        reg = make_registration()
        assert unsubscribe(db, reg.id, reg.access_token) is reg
        assert reg.notification_pref == "none"
        entry = get_history(db, reg.id)[-1]
        assert entry.changed_fields == {"notification_pref": {"old": "both", "new": "none"}}
        assert entry.changed_by == "customer:unsubscribe"

    def test_repeat_unsubscribe_is_noop(self, db, make_registration):
        reg = make_registration()
        unsubscribe(db, reg.id, reg.access_token)
        version = reg.version
        assert unsubscribe(db, reg.id, reg.access_token) is reg
        assert reg.version == version
        assert len(get_history(db, reg.id)) == 2

    def test_wrong_token_and_unknown_id(self, db, make_registration):
        reg = make_registration()
        assert unsubscribe(db, reg.id, "0" * 32) is None
        assert unsubscribe(db, reg.id + 100, reg.access_token) is None
        db.refresh(reg)
        assert reg.notification_pref == "both"

    def test_admin_can_resubscribe(self, db, make_registration):
        reg = make_registration()
        unsubscribe(db, reg.id, reg.access_token)
        update_notification_preference(db, reg.id, "sms", actor="admin@dealer")
        assert reg.notification_pref == "sms"
