from datetime import date as date_type
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class GroupTotalResponse(BaseModel):
	key: str
	label: Optional[str] = None
	consumption: float
	meters: int

	model_config = ConfigDict(from_attributes=True)


class OverviewStatsResponse(BaseModel):
	total_meters: int
	count_active: int
	heat_meters: int
	gas_meters: int
	electric_meters: int
	total_consumption_equivalent: float
	average_consumption: float
	conversion_factor: float
	by_facility: List[GroupTotalResponse]
	by_kind: List[GroupTotalResponse]

	model_config = ConfigDict(from_attributes=True)


class MeterConsumptionResponse(BaseModel):
	meter_id: UUID
	name: str
	kind: str
	unit: str
	facility_id: Optional[UUID] = None
	consumption: float
	consumption_equivalent: float

	model_config = ConfigDict(from_attributes=True)


class TrendPointResponse(BaseModel):
	date: date_type
	consumption: float

	model_config = ConfigDict(from_attributes=True)


class ConsumptionStatsResponse(BaseModel):
	start_date: date_type
	end_date: date_type
	per_meter: List[MeterConsumptionResponse]
	daily_trend: List[TrendPointResponse]

	model_config = ConfigDict(from_attributes=True)
