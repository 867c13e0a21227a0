# app/services/messaging.py
"""
Outbound messaging: SMS via the Twilio REST API, email via the Resend REST API.

Both senders talk to the providers directly with httpx (no SDKs) and never
raise for provider or network failures: every call returns a DeliveryResult
so the caller can record the attempt.
"""

from dataclasses import dataclass
from typing import Optional
import httpx
from app.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class DeliveryResult:
    delivered: bool
    error: Optional[str] = None
    provider_message_id: Optional[str] = None


class TwilioSmsSender:
    channel = "sms"

    def __init__(self, account_sid: Optional[str] = None, auth_token: Optional[str] = None,
                 from_number: Optional[str] = None, timeout: Optional[float] = None):
        self.account_sid = account_sid or settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number or settings.TWILIO_PHONE_NUMBER
        self.timeout = timeout or settings.MESSAGING_TIMEOUT_SECONDS

    async def send(self, recipient: str, body: str, subject: Optional[str] = None) -> DeliveryResult:
        missing = [name for name, value in (("TWILIO_ACCOUNT_SID", self.account_sid),
                                            ("TWILIO_AUTH_TOKEN", self.auth_token),
                                            ("TWILIO_PHONE_NUMBER", self.from_number)) if not value]
        if missing:
            logger.error(f"[SMS] Missing settings: {', '.join(missing)}")
            return DeliveryResult(False, f"Missing settings: {', '.join(missing)}")

        url = f"{settings.TWILIO_API_URL}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    url,
                    auth=(self.account_sid, self.auth_token),
                    data={"To": recipient, "From": self.from_number, "Body": body},
                )
            data = resp.json() if resp.content else {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[SMS] Network error sending to {recipient}: {e}")
            return DeliveryResult(False, f"Network error: {e}")

        if resp.is_success:
            logger.info(f"[SMS] Sent to {recipient}, SID: {data.get('sid')}")
            return DeliveryResult(True, provider_message_id=data.get("sid"))

        error = data.get("message") or data.get("error_message") or f"HTTP {resp.status_code}"
        logger.warning(f"[SMS] Failed to {recipient}: {error}")
        return DeliveryResult(False, error)


class ResendEmailSender:
    channel = "email"

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.api_key = api_key or settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = timeout or settings.MESSAGING_TIMEOUT_SECONDS

    async def send(self, recipient: str, body: str, subject: Optional[str] = None) -> DeliveryResult:
        if not self.api_key:
            logger.error("[EMAIL] Missing setting: RESEND_API_KEY")
            return DeliveryResult(False, "Missing settings: RESEND_API_KEY")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    settings.RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={"from": self.sender, "to": recipient, "subject": subject or "", "html": body},
                )
            data = resp.json() if resp.content else {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[EMAIL] Network error sending to {recipient}: {e}")
            return DeliveryResult(False, f"Network error: {e}")

        if resp.is_success:
            logger.info(f"[EMAIL] Sent to {recipient}, ID: {data.get('id')}")
            return DeliveryResult(True, provider_message_id=data.get("id"))

        nested = data.get("error")
        if isinstance(nested, dict):
            nested = nested.get("message")
        error = data.get("message") or nested or f"HTTP {resp.status_code}"
        logger.warning(f"[EMAIL] Failed to {recipient}: {error}")
        return DeliveryResult(False, error)
