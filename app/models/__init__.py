# Registration Ledger — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.vehicle import Vehicle                                        # noqa
from app.models.registration import Registration                              # noqa
from app.models.registration_audit import RegistrationAudit                   # noqa
from app.models.registration_notification import RegistrationNotification     # noqa
from app.models.plate import Plate, PlateAssignment, PlateAlert               # noqa
from app.models.rental import RentalBooking, RentalInsurance                  # noqa
