from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, field_validator


class FacilityBase(BaseModel):
	name: str = Field(..., max_length=255)
	type: Optional[str] = None
	location: Optional[str] = None
	address: Optional[str] = None
	description: Optional[str] = None
	status: str = "Active"
	manager: Optional[str] = None
	contact: Optional[str] = None
	area: Optional[float] = Field(None, ge=0)
	floors: Optional[int] = Field(None, ge=0)
	year_built: Optional[int] = None
	notes: Optional[str] = None


class FacilityCreate(FacilityBase):

	@field_validator("name")
	def not_blank(cls, v):
		if not v.strip():
			raise ValueError("must not be blank")
		return v.strip()


class FacilityUpdate(BaseModel):
	name: Optional[str] = Field(None, max_length=255)
	type: Optional[str] = None
	location: Optional[str] = None
	address: Optional[str] = None
	description: Optional[str] = None
	status: Optional[str] = None
	manager: Optional[str] = None
	contact: Optional[str] = None
	area: Optional[float] = Field(None, ge=0)
	floors: Optional[int] = Field(None, ge=0)
	year_built: Optional[int] = None
	notes: Optional[str] = None


class FacilityResponse(FacilityBase):
	id: UUID
	meter_count: int = 0
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)


class FacilityListResponse(BaseModel):
	total: int
	data: List[FacilityResponse]
