from app.models.facility import Facility
from app.models.meter import Meter, MeterKind, MeterStatus
from app.models.reading import Reading
from app.models.user import User, UserRole

__all__ = ["Facility", "Meter", "MeterKind", "MeterStatus", "Reading", "User", "UserRole"]
