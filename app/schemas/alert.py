# app/schemas/alert.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class PlateAlertOut(BaseModel):
    id: int
    plate_id: int
    alert_type: str
    severity: str
    description: Optional[str]
    first_detected_at: datetime
    last_notified_at: Optional[datetime]
    resolved_at: Optional[datetime]

    class Config:
        from_attributes = True
