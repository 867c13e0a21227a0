# app/services/notification_service.py
"""
Customer notification dispatch for registration stage changes.

On each stage change the dispatcher composes the stage's customer message,
resolves the registration's preference (sms | email | both | none) and tries
every enabled channel, writing one RegistrationNotification row per attempt
whether or not it was delivered. When SMS fails and an email address is on
file, email is tried as a fallback.

`none` silences stage updates only; verification codes always go out.
"""

import hmac
from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app import database
from app.config import settings
from app.models.registration import Registration
from app.models.registration_notification import RegistrationNotification
from app.services import registration_service
from app.services.messaging import DeliveryResult, ResendEmailSender, TwilioSmsSender
from app.services.stages import RegistrationStage, get_stage_config, progress_fraction
from app.utils.logger import get_logger
from app.utils.templates import render_email

logger = get_logger(__name__)

S = RegistrationStage

# What the customer reads for each stage
CUSTOMER_MESSAGES = {
    S.SALE_COMPLETE: "Congratulations on your purchase! We've started your registration and will keep you posted.",
    S.DOCUMENTS_COLLECTED: "We have all of your paperwork and are preparing your DMV packet.",
    S.SUBMITTED_TO_DMV: "Your registration packet has been submitted to the DMV.",
    S.DMV_PROCESSING: "The DMV is reviewing your registration. This usually takes 5-10 business days.",
    S.STICKER_READY: "Your registration is approved and your sticker is ready for pickup or delivery.",
    S.STICKER_DELIVERED: "Your sticker has been delivered. Your registration is complete. Thank you!",
    S.REJECTED: "The DMV returned your registration for corrections. Our team is already addressing it.",
}

SMS_CHANNELS = {"sms", "both"}
EMAIL_CHANNELS = {"email", "both"}


def tracking_url(registration: Registration) -> str:
    return f"{settings.PUBLIC_SITE_URL.rstrip('/')}/track/{registration.order_id}-{registration.access_token}"


def unsubscribe_url(registration: Registration) -> str:
    return (f"{settings.PUBLIC_SITE_URL.rstrip('/')}/unsubscribe"
            f"?reg={registration.id}&token={registration.access_token}")


def compose_subject(stage: RegistrationStage) -> str:
    if stage == S.REJECTED:
        return "Attention Required - Registration Returned"
    return f"Registration Update - {get_stage_config(stage).label}"


def compose_sms(registration: Registration, stage: RegistrationStage) -> str:
    label = get_stage_config(stage).label
    lead = f"Hi {registration.customer_name}, your {registration.vehicle_description} registration"
    if stage == S.REJECTED:
        return (f"{lead} was returned by DMV for corrections. {CUSTOMER_MESSAGES[stage]} "
                f"View details: {tracking_url(registration)}\n"
                f"Questions? Call {settings.DEALER_PHONE}\nReply STOP to unsubscribe")
    return (f"{lead} is now at {label}. {CUSTOMER_MESSAGES[stage]} "
            f"View details: {tracking_url(registration)}\nReply STOP to unsubscribe")


def compose_email(registration: Registration, stage: RegistrationStage,
                  rejection_notes: Optional[str] = None) -> str:
    """Email body. `rejection_notes` are the notes captured when the stage changed, if known."""
    context = {
        "customer_name": registration.customer_name,
        "vehicle": registration.vehicle_description,
        "details_url": tracking_url(registration),
        "unsubscribe_url": unsubscribe_url(registration),
    }
    if stage == S.REJECTED:
        return render_email("email/rejection.html",
                            rejection_notes=rejection_notes or registration.rejection_notes, **context)
    return render_email(
        "email/stage_update.html",
        stage_label=get_stage_config(stage).label,
        stage_description=CUSTOMER_MESSAGES[stage],
        progress_percent=int(round(progress_fraction(stage) * 100)),
        **context,
    )


class NotificationDispatcher:
    def __init__(self, sms_sender=None, email_sender=None):
        self.sms_sender = sms_sender or TwilioSmsSender()
        self.email_sender = email_sender or ResendEmailSender()

    async def _deliver(self, sender, recipient: Optional[str], body: str, subject: str) -> DeliveryResult:
        if not recipient:
            return DeliveryResult(False, f"No {sender.channel} contact on file")
        try:
            return await sender.send(recipient, body, subject=subject)
        except Exception as e:
            logger.error(f"[NOTIFY] {sender.channel} sender raised: {e}", exc_info=True)
            return DeliveryResult(False, str(e))

    @staticmethod
    def _record(db: Session, registration: Registration, channel: str, recipient: Optional[str],
                result: DeliveryResult, *, subject: str, message: str, template: str,
                old_stage: Optional[RegistrationStage] = None, new_stage: Optional[RegistrationStage] = None,
                triggered_by: str = "admin_action") -> RegistrationNotification:
        row = RegistrationNotification(
            registration_id=registration.id,
            channel=channel,
            recipient=recipient,
            old_stage=old_stage.value if old_stage else None,
            new_stage=new_stage.value if new_stage else None,
            subject=subject,
            message=message,
            template_used=template,
            provider_message_id=result.provider_message_id,
            triggered_by=triggered_by,
            delivered=result.delivered,
            delivery_error=result.error,
            sent_at=datetime.utcnow(),
        )
        db.add(row)
        if not result.delivered:
            logger.warning(f"[NOTIFY] {channel} to {registration.order_id} not delivered: {result.error}")
        return row

    @staticmethod
    def _commit(db: Session, registration: Registration, rows: list):
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[NOTIFY] Could not record {len(rows)} notification(s) for "
                         f"registration {registration.id}: {e}", exc_info=True)

    async def notify_stage_change(self, db: Session, registration: Registration,
                                  old_stage: Optional[RegistrationStage], new_stage: RegistrationStage,
                                  triggered_by: str = "admin_action",
                                  rejection_notes: Optional[str] = None) -> list[RegistrationNotification]:
        preference = registration.notification_pref or "both"
        if preference == "none":
            logger.info(f"[NOTIFY] {registration.order_id} preference is 'none', stage update not sent")
            return []

        new_stage = RegistrationStage(new_stage)
        old_stage = RegistrationStage(old_stage) if old_stage else None
        subject = compose_subject(new_stage)
        is_rejection = new_stage == S.REJECTED
        rows = []

        sms_failed = False
        if preference in SMS_CHANNELS:
            body = compose_sms(registration, new_stage)
            result = await self._deliver(self.sms_sender, registration.customer_phone, body, subject)
            rows.append(self._record(
                db, registration, "sms", registration.customer_phone, result,
                subject=subject, message=body,
                template="rejection_sms" if is_rejection else "stage_update_sms",
                old_stage=old_stage, new_stage=new_stage, triggered_by=triggered_by,
            ))
            sms_failed = not result.delivered

        fallback = sms_failed and preference not in EMAIL_CHANNELS and bool(registration.customer_email)
        if preference in EMAIL_CHANNELS or fallback:
            body = compose_email(registration, new_stage, rejection_notes)
            result = await self._deliver(self.email_sender, registration.customer_email, body, subject)
            template = "rejection_email" if is_rejection else "stage_update_email"
            rows.append(self._record(
                db, registration, "email", registration.customer_email, result,
                subject=subject, message=body,
                template=f"{template}_fallback" if fallback else template,
                old_stage=old_stage, new_stage=new_stage, triggered_by=triggered_by,
            ))

        self._commit(db, registration, rows)
        delivered = sum(1 for row in rows if row.delivered)
        logger.info(f"[NOTIFY] {registration.order_id} {new_stage.value}: {delivered}/{len(rows)} delivered")
        return rows

    async def send_verification_code(self, db: Session, registration: Registration, code: str,
                                     channel: str = "sms") -> RegistrationNotification:
        """Login/verification codes ignore the notification preference."""
        subject = f"{settings.DEALER_NAME} verification code"
        body = f"Your {settings.DEALER_NAME} verification code is {code}. It expires in 10 minutes."
        if channel == "sms":
            sender, recipient = self.sms_sender, registration.customer_phone
        else:
            sender, recipient = self.email_sender, registration.customer_email
        result = await self._deliver(sender, recipient, body, subject)
        row = self._record(db, registration, sender.channel, recipient, result,
                           subject=subject, message=body, template="verification_code",
                           triggered_by="system")
        self._commit(db, registration, [row])
        return row


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency. One dispatcher per process."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


async def dispatch_in_background(dispatcher: NotificationDispatcher, registration_id: int,
                                 old_stage: Optional[RegistrationStage], new_stage: RegistrationStage,
                                 rejection_notes: Optional[str] = None):
    """Runs after the HTTP response with its own session."""
    db = database.SessionLocal()
    try:
        registration = db.query(Registration).filter(Registration.id == registration_id).first()
        if not registration:
            logger.warning(f"[NOTIFY] Registration {registration_id} vanished before dispatch")
            return
        await dispatcher.notify_stage_change(db, registration, old_stage, new_stage,
                                             rejection_notes=rejection_notes)
    except Exception as e:
        logger.error(f"[NOTIFY] Background dispatch for {registration_id} failed: {e}", exc_info=True)
    finally:
        db.close()


class BackgroundNotifier:
    """Stage-change notifier that defers dispatch to FastAPI BackgroundTasks."""

    def __init__(self, background_tasks, dispatcher: NotificationDispatcher):
        self.background_tasks = background_tasks
        self.dispatcher = dispatcher

    async def notify_stage_change(self, db, registration, old_stage, new_stage, rejection_notes=None):
        # notes are captured now; the row may be resubmitted before the task runs
        self.background_tasks.add_task(dispatch_in_background, self.dispatcher,
                                       registration.id, old_stage, new_stage, rejection_notes)


def get_notification_history(db: Session, registration_id: int) -> list[RegistrationNotification]:
    """Newest first."""
    return (
        db.query(RegistrationNotification)
        .filter(RegistrationNotification.registration_id == registration_id)
        .order_by(RegistrationNotification.sent_at.desc(), RegistrationNotification.id.desc())
        .all()
    )


def unsubscribe(db: Session, registration_id: int, token: str) -> Optional[Registration]:
    """
    One-click unsubscribe. Sets the preference to 'none' when the token matches
    and returns the registration; returns None for unknown ids and wrong tokens alike.
    Repeated calls are no-ops (no diff, no audit row).
    """
    registration = db.query(Registration).filter(Registration.id == registration_id).first()
    if registration is None:
        logger.info(f"[UNSUBSCRIBE] Unknown registration {registration_id}")
        return None
    if not hmac.compare_digest(registration.access_token.encode(), (token or "").encode()):
        logger.warning(f"[UNSUBSCRIBE] Token mismatch for registration {registration_id}")
        return None

    registration_service.update_notification_preference(
        db, registration.id, "none", reason="One-click unsubscribe", actor="customer:unsubscribe",
    )
    logger.info(f"[UNSUBSCRIBE] {registration.order_id} unsubscribed")
    return registration
