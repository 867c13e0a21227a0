# app/models/registration_audit.py
"""
Registration audit table — append-only, one row per mutating operation.
`changed_fields` holds a {field: {"old": ..., "new": ...}} diff.
ORM hooks below refuse any UPDATE or DELETE of an existing row.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey, event
from app.database import Base
from app.services.errors import AuditImmutableError


class RegistrationAudit(Base):
    __tablename__ = "registration_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_id = Column(Integer, ForeignKey("registrations.id"), nullable=False, index=True)
    operation = Column(String(10), nullable=False)      # INSERT | UPDATE | DELETE
    changed_fields = Column(JSON, nullable=False, default=dict)
    change_reason = Column(Text)
    changed_by = Column(String(200))
    changed_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<RegistrationAudit {self.id} reg={self.registration_id} op={self.operation}>"


@event.listens_for(RegistrationAudit, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise AuditImmutableError(f"Audit row {target.id} is immutable")


@event.listens_for(RegistrationAudit, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise AuditImmutableError(f"Audit row {target.id} cannot be deleted")
