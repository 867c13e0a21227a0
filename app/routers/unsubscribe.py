# app/routers/unsubscribe.py
"""
One-click unsubscribe linked from every stage email: GET /unsubscribe?reg=&token=
Always answers with an HTML page. Bad or mismatched parameters all get the
same invalid-link page.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.services.errors import RegistrationError
from app.services.notification_service import tracking_url, unsubscribe
from app.utils.logger import get_logger
from app.utils.templates import pages

router = APIRouter()
logger = get_logger(__name__)


def _invalid_link(request: Request):
    return pages.TemplateResponse(request, "unsubscribe/invalid_link.html", {}, status_code=400)


@router.get("/unsubscribe", response_class=HTMLResponse, summary="One-click unsubscribe")
def unsubscribe_page(request: Request, reg: Optional[str] = None, token: Optional[str] = None,
                     db: Session = Depends(get_db)):
    if not reg or not token or not reg.isdigit():
        return _invalid_link(request)

    try:
        registration = unsubscribe(db, int(reg), token)
    except RegistrationError as e:
        logger.error(f"[UNSUBSCRIBE] Could not update registration {reg}: {e.message}")
        return pages.TemplateResponse(request, "unsubscribe/error.html", {}, status_code=500)

    if registration is None:
        return _invalid_link(request)
    return pages.TemplateResponse(request, "unsubscribe/unsubscribed.html",
                                  {"tracking_url": tracking_url(registration)})
