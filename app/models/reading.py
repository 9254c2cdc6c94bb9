from sqlalchemy import Column, ForeignKey, Float, Date, Text, Uuid
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.base import BaseModel


class Reading(Base, BaseModel):
	"""Append-only record of a submitted cumulative reading"""
	__tablename__ = "readings"

	meter_id = Column(Uuid(as_uuid=True), ForeignKey("meters.id", ondelete="CASCADE"), nullable=False, index=True)
	user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
	reading_date = Column(Date, nullable=False, index=True)
	reading_value = Column(Float, nullable=False)
	# reading_value minus the meter's current reading before the update
	consumption = Column(Float, nullable=False, default=0.0)
	notes = Column(Text)

	# Relationships
	meter = relationship("Meter", back_populates="readings")
	user = relationship("User", back_populates="readings")
