# app/models/registration_notification.py
"""
Registration notifications table — one row per outbound message attempt.
Failed deliveries are stored with delivered=False and the provider error;
retries add new rows.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey
from app.database import Base


class RegistrationNotification(Base):
    __tablename__ = "registration_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_id = Column(Integer, ForeignKey("registrations.id"), nullable=False, index=True)
    channel = Column(String(10), nullable=False)          # sms | email
    recipient = Column(String(255))
    old_stage = Column(String(30))
    new_stage = Column(String(30))
    subject = Column(String(255))
    message = Column(Text)
    template_used = Column(String(50))
    provider_message_id = Column(String(100))
    triggered_by = Column(String(20), default="admin_action", nullable=False)   # admin_action | auto | system
    delivered = Column(Boolean, default=False, nullable=False)
    delivery_error = Column(Text)
    sent_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<RegistrationNotification {self.id} {self.channel} delivered={self.delivered}>"
