from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.schemas.meter import MeterResponse


class ReadingSubmit(BaseModel):
    reading_date: date
    # Type and range are checked by the service so bad values surface as InvalidReadingError
    reading_value: Any
    notes: Optional[str] = ""


class ReadingResponse(BaseModel):
    id: UUID
    meter_id: UUID
    user_id: Optional[UUID] = None
    reading_date: date
    reading_value: float
    consumption: float
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReadingSubmitResponse(BaseModel):
    message: str
    meter: MeterResponse
    consumption: float
    consumption_equivalent: float
    reading: ReadingResponse
