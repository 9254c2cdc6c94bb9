# schemas/meter.py
from datetime import date, datetime
from typing import Optional, Dict, Any, List
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.models.meter import MeterKind, MeterStatus


class MeterBase(BaseModel):
    name: str = Field(..., max_length=255)
    number: str = Field(..., max_length=100)
    location: Optional[str] = None
    facility_id: Optional[UUID] = None
    kind: MeterKind
    unit: str = Field(..., max_length=20)

    current_reading: float = Field(0.0, ge=0)
    previous_reading: float = Field(0.0, ge=0)
    installation_date: Optional[date] = None
    last_reading_date: Optional[date] = None

    status: MeterStatus = MeterStatus.ACTIVE
    notes: Optional[str] = None
    meter_metadata: Optional[Dict[str, Any]] = {}


class MeterCreate(MeterBase):

    @field_validator("name", "number", "unit")
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class MeterUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    number: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = None
    facility_id: Optional[UUID] = None
    kind: Optional[MeterKind] = None
    unit: Optional[str] = Field(None, max_length=20)
    current_reading: Optional[float] = Field(None, ge=0)
    previous_reading: Optional[float] = Field(None, ge=0)
    installation_date: Optional[date] = None
    status: Optional[MeterStatus] = None
    notes: Optional[str] = None
    meter_metadata: Optional[Dict[str, Any]] = None


class MeterResponse(MeterBase):
    id: UUID
    facility_name: Optional[str] = None
    consumption: float
    consumption_equivalent: float
    conversion_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class MeterListResponse(BaseModel):
    total: int
    data: List[MeterResponse]


class MeterImportResponse(BaseModel):
    success: int
    failed: int
    errors: list[str]
    meters: list[MeterResponse]


class ResetReadingsResponse(BaseModel):
    changes: int
    message: str
