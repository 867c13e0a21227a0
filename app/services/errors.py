# app/services/errors.py
"""
Error taxonomy for the registration ledger and its sibling workflows.
Routers never catch these individually; app.main maps each class to an
HTTP status via `status_code` and `kind`.
"""


class RegistrationError(Exception):
    status_code = 400
    kind = "registration_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class IllegalTransitionError(RegistrationError):
    """Requested stage change is not in the adjacency table, or required notes are missing."""
    status_code = 422
    kind = "illegal_transition"

    def __init__(self, message: str, current=None, target=None):
        super().__init__(message)
        self.current = current
        self.target = target


class WriteConflictError(RegistrationError):
    """A concurrent mutation won the race; reload and retry."""
    status_code = 409
    kind = "write_conflict"


class PersistenceUnavailableError(RegistrationError):
    """The store could not complete a write."""
    status_code = 503
    kind = "persistence_unavailable"


class RegistrationNotFoundError(RegistrationError):
    status_code = 404
    kind = "not_found"


class AuditImmutableError(RegistrationError):
    status_code = 500
    kind = "audit_immutable"


class BookingConflictError(RegistrationError):
    status_code = 409
    kind = "booking_conflict"


class InvalidBookingTransitionError(RegistrationError):
    status_code = 422
    kind = "invalid_booking_transition"


class PlateUnavailableError(RegistrationError):
    status_code = 409
    kind = "plate_unavailable"
