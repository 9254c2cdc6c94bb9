from dataclasses import dataclass
from datetime import date, datetime
from numbers import Real
from typing import List, Optional, Tuple
from uuid import UUID
import logging
import math

from app.config import settings
from app.core.exceptions import InvalidReadingError, MeterNotFoundError, ValidationError
from app.models.meter import Meter
from app.models.reading import Reading
from app.monitoring.metrics import readings_submitted
from app.repositories.meter_repository import MeterRepository, MeterQuery, ReadingQuery
from app.services.consumption import (
	ConsumptionStats,
	compute_consumption,
	consumption_stats,
	cumulative_value,
	kind_value,
	resolve_period,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
	meter: Meter
	reading: Reading
	consumption: float
	consumption_equivalent: float


def _validated_value(meter_id, value) -> float:
	if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
		raise InvalidReadingError(f"Reading value {value!r} is not a number", meter_id=meter_id)
	if value < 0:
		raise InvalidReadingError(f"Reading value {value} must not be negative", meter_id=meter_id)
	return float(value)


def _validated_date(value) -> date:
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	raise ValidationError(f"Reading date {value!r} is not a calendar date")


class ReadingService:
	def __init__(self, repository: MeterRepository):
		self.repository = repository

	async def submit_reading(
			self,
			meter_id: UUID,
			reading_date: date,
			reading_value: float,
			notes: Optional[str] = None,
			user_id: Optional[UUID] = None,
	) -> SubmissionResult:
		"""
		Apply a new cumulative reading to a meter.

		Everything is validated before the meter is touched; the meter update
		and the reading event are then persisted together.
		"""
		meter = await self.repository.get(meter_id)
		if not meter:
			raise MeterNotFoundError(meter_id)

		value = _validated_value(meter_id, reading_value)
		reading_date = _validated_date(reading_date)
		prior_current = cumulative_value(meter, "current_reading")

		meter.previous_reading = prior_current
		meter.current_reading = value
		meter.last_reading_date = reading_date
		result = compute_consumption(meter)

		reading = Reading(
			meter_id=meter.id,
			user_id=user_id,
			reading_date=reading_date,
			reading_value=value,
			consumption=value - prior_current,
			notes=notes,
		)
		await self.repository.save_reading(meter, reading)
		readings_submitted.labels(kind=kind_value(meter.kind)).inc()

		logger.info(
			f"Reading {value} recorded for meter {meter.number}: "
			f"consumption {result.consumption} {meter.unit}"
		)
		return SubmissionResult(
			meter=meter,
			reading=reading,
			consumption=result.consumption,
			consumption_equivalent=result.consumption_equivalent,
		)

	async def list_readings(self, query: ReadingQuery = ReadingQuery()) -> Tuple[int, List[Reading]]:
		return await self.repository.list_readings(query)

	async def meter_history(self, meter_id: UUID, skip: int = 0, limit: Optional[int] = None) -> Tuple[int, List[Reading]]:
		if not await self.repository.get(meter_id):
			raise MeterNotFoundError(meter_id)
		return await self.repository.list_readings(ReadingQuery(meter_id=meter_id, skip=skip, limit=limit))

	async def consumption_stats(
			self,
			start_date: Optional[date] = None,
			end_date: Optional[date] = None,
	) -> ConsumptionStats:
		"""Per-meter consumption plus a daily trend built from recorded readings"""
		start, end = resolve_period(start_date, end_date, settings.TREND_DEFAULT_DAYS)
		meters = await self.repository.list(MeterQuery())
		_, readings = await self.repository.list_readings(ReadingQuery(start_date=start, end_date=end))
		return consumption_stats(meters, readings, start, end)
