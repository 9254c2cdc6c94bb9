from sqlalchemy import Column, String, Text, Float, Integer
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.base import BaseModel


class Facility(Base, BaseModel):
	__tablename__ = "facilities"

	name = Column(String(255), nullable=False, index=True)
	type = Column(String(100))
	location = Column(String(255))
	address = Column(Text)
	description = Column(Text)
	status = Column(String(20), default="Active", index=True)
	manager = Column(String(255))
	contact = Column(String(255))
	area = Column(Float)
	floors = Column(Integer)
	year_built = Column(Integer)
	notes = Column(Text)

	meters = relationship("Meter", back_populates="facility")
