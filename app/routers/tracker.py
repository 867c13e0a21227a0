# app/routers/tracker.py
"""
Public customer tracker: GET /track/{orderId}-{accessToken}.
No API key; the link itself is the credential. Unknown orders and wrong
tokens return the same 404 body.
"""

from dataclasses import asdict
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.schemas.tracker import TrackerOut
from app.services.tracker_service import resolve_access_key

router = APIRouter()


@router.get("/track/{access_key}", response_model=TrackerOut, summary="Customer registration tracker")
def track(access_key: str, db: Session = Depends(get_db)):
    view = resolve_access_key(db, access_key)
    if view is None:
        return JSONResponse(
            status_code=404,
            content={"detail": "Registration not found or link expired", "contact": settings.DEALER_PHONE},
        )
    return asdict(view)
