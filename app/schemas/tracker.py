# app/schemas/tracker.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class TimelineStepOut(BaseModel):
    key: str
    label: str
    status: str

    class Config:
        from_attributes = True


class TrackerOut(BaseModel):
    order_id: str
    vehicle: str
    plate_number: Optional[str]
    current_stage: str
    stage_label: str
    stage_description: str
    ownership_label: str
    expected_duration: Optional[str]
    stage_number: int
    progress_percent: int
    sale_date: Optional[datetime]
    submission_date: Optional[datetime]
    approval_date: Optional[datetime]
    delivery_date: Optional[datetime]
    rejection_notes: Optional[str]
    timeline: list[TimelineStepOut]

    class Config:
        from_attributes = True
