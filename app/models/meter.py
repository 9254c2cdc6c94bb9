# models/meter.py
import enum

from sqlalchemy import Column, String, Text, Float, Date, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.base import BaseModel


class MeterKind(str, enum.Enum):
    HEAT = "heat"
    GAS = "gas"
    ELECTRIC = "electric"


class MeterStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    MAINTENANCE = "Maintenance"


# Canonical unit per meter kind
DEFAULT_UNITS = {
    MeterKind.HEAT: "MWh",
    MeterKind.GAS: "m³",
    MeterKind.ELECTRIC: "MWh",
}


class Meter(Base, BaseModel):
    __tablename__ = "meters"

    name = Column(String(255), nullable=False)
    number = Column(String(100), unique=True, nullable=False, index=True)
    location = Column(Text, nullable=True)
    facility_id = Column(Uuid(as_uuid=True), ForeignKey("facilities.id"), nullable=True, index=True)
    kind = Column(String(20), nullable=False, index=True)
    unit = Column(String(20), nullable=False)

    # Cumulative readings
    current_reading = Column(Float, nullable=False, default=0.0)
    previous_reading = Column(Float, nullable=False, default=0.0)

    installation_date = Column(Date, nullable=True)
    last_reading_date = Column(Date, nullable=True)

    status = Column(String(20), default=MeterStatus.ACTIVE.value, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    # Kind specific attributes (electric: meter_type, voltage, max_capacity)
    meter_metadata = Column(JSON, default=dict)

    facility = relationship("Facility", back_populates="meters")
    readings = relationship("Reading", back_populates="meter", cascade="all, delete-orphan")
