# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + messaging provider reachability.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.config import settings
from datetime import datetime

router = APIRouter()


def _ping(url: str, **kwargs) -> str:
    try:
        resp = requests.get(url, timeout=3, **kwargs)
        return "ok" if resp.status_code < 400 else f"http_{resp.status_code}"
    except requests.exceptions.ConnectionError:
        return "unreachable"
    except requests.exceptions.RequestException as e:
        return f"error: {str(e)}"


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status and build version
    - Database connectivity
    - Messaging provider reachability (only for configured providers)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_BUILD_VERSION,
        "backend": "ok",
        "database": "unknown",
        "messaging": {},
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    if settings.SMS_CONFIGURED:
        result["messaging"]["sms"] = _ping(
            f"{settings.TWILIO_API_URL}/Accounts/{settings.TWILIO_ACCOUNT_SID}.json",
            auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
        )
    else:
        result["messaging"]["sms"] = "not_configured"

    if settings.EMAIL_CONFIGURED:
        result["messaging"]["email"] = _ping(
            "https://api.resend.com/domains", headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
        )
    else:
        result["messaging"]["email"] = "not_configured"

    return result
