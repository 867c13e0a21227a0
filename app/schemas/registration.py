# app/schemas/registration.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Optional


class RegistrationCreate(BaseModel):
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    vehicle_id: Optional[int] = None          # pre-fills VIN/year/make/model from inventory
    vin: Optional[str] = None
    vehicle_year: Optional[int] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    plate_number: Optional[str] = None
    notes: Optional[str] = None
    notification_pref: str = "both"           # sms | email | both | none
    doc_title_front: bool = False
    doc_title_back: bool = False
    doc_130u: bool = False
    doc_insurance: bool = False
    doc_inspection: bool = False
    notify_customer: bool = True
    reason: Optional[str] = None


class RegistrationOut(BaseModel):
    id: int
    order_id: str
    access_token: str
    vehicle_id: Optional[int]
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    customer_address: Optional[str]
    vin: str
    vehicle_year: int
    vehicle_make: str
    vehicle_model: str
    plate_number: Optional[str]
    doc_title_front: bool
    doc_title_back: bool
    doc_130u: bool
    doc_insurance: bool
    doc_inspection: bool
    current_stage: str
    sale_date: Optional[datetime]
    submission_date: Optional[datetime]
    approval_date: Optional[datetime]
    delivery_date: Optional[datetime]
    rejection_notes: Optional[str]
    notes: Optional[str]
    notification_pref: str
    is_archived: bool
    version: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class StageUpdate(BaseModel):
    target_stage: str
    reason: Optional[str] = None
    rejection_notes: Optional[str] = None
    notify_customer: bool = True
    expected_version: Optional[int] = None


class ChecklistUpdate(BaseModel):
    doc_title_front: Optional[bool] = None
    doc_title_back: Optional[bool] = None
    doc_130u: Optional[bool] = None
    doc_insurance: Optional[bool] = None
    doc_inspection: Optional[bool] = None
    reason: Optional[str] = None
    expected_version: Optional[int] = None


class NotesUpdate(BaseModel):
    notes: Optional[str] = None
    reason: Optional[str] = None


class PreferenceUpdate(BaseModel):
    notification_pref: str
    reason: Optional[str] = None


class ArchiveRequest(BaseModel):
    reason: Optional[str] = None


class AuditEntryOut(BaseModel):
    id: int
    registration_id: int
    operation: str
    changed_fields: dict[str, Any]
    change_reason: Optional[str]
    changed_by: Optional[str]
    changed_at: datetime

    class Config:
        from_attributes = True


class NotificationOut(BaseModel):
    id: int
    registration_id: int
    channel: str
    recipient: Optional[str]
    old_stage: Optional[str]
    new_stage: Optional[str]
    subject: Optional[str]
    template_used: Optional[str]
    provider_message_id: Optional[str]
    triggered_by: str
    delivered: bool
    delivery_error: Optional[str]
    sent_at: datetime

    class Config:
        from_attributes = True


class StageOut(BaseModel):
    key: str
    label: str
    ownership: str
    ownership_label: str
    description: str
    order: int
    expected_duration: Optional[str]
    requires_notes: bool = False
    next_stages: list[str] = Field(default_factory=list)
