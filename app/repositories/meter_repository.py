# app/repositories/meter_repository.py
"""Storage interface for meters and their reading events."""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, or_, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, StorageError
from app.models.facility import Facility
from app.models.meter import Meter
from app.models.reading import Reading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeterQuery:
	search: Optional[str] = None
	status: Optional[str] = None
	facility_id: Optional[UUID] = None
	kind: Optional[str] = None


@dataclass(frozen=True)
class ReadingQuery:
	meter_id: Optional[UUID] = None
	start_date: Optional[date] = None
	end_date: Optional[date] = None
	skip: int = 0
	limit: Optional[int] = None


class MeterRepository(abc.ABC):
	"""Load/save contract the meter services depend on"""

	@abc.abstractmethod
	async def get(self, meter_id: UUID) -> Optional[Meter]: ...

	@abc.abstractmethod
	async def get_by_number(self, number: str) -> Optional[Meter]: ...

	@abc.abstractmethod
	async def list(self, query: MeterQuery = MeterQuery()) -> List[Meter]: ...

	@abc.abstractmethod
	async def add(self, meter: Meter) -> Meter: ...

	@abc.abstractmethod
	async def save(self, meter: Meter) -> Meter: ...

	@abc.abstractmethod
	async def delete(self, meter: Meter) -> None: ...

	@abc.abstractmethod
	async def save_reading(self, meter: Meter, reading: Reading) -> Reading:
		"""Persist the updated meter and its new reading event together."""

	@abc.abstractmethod
	async def list_readings(self, query: ReadingQuery = ReadingQuery()) -> Tuple[int, List[Reading]]: ...

	@abc.abstractmethod
	async def count_readings(self, meter_id: UUID) -> int: ...

	@abc.abstractmethod
	async def reset_readings(self) -> int: ...

	@abc.abstractmethod
	async def facility_names(self) -> Dict[UUID, str]:
		"""Names of the facilities meters may reference, keyed by id."""


class SQLAlchemyMeterRepository(MeterRepository):
	def __init__(self, session: AsyncSession):
		self.session = session

	async def _commit(self, action: str) -> None:
		try:
			await self.session.commit()
		except IntegrityError as e:
			await self.session.rollback()
			logger.warning(f"Integrity error while trying to {action}: {e.orig}")
			raise DuplicateError(f"Could not {action}: a unique value is already in use")
		except SQLAlchemyError as e:
			await self.session.rollback()
			logger.error(f"Storage failure while trying to {action}: {e}")
			raise StorageError(f"Storage failure while trying to {action}")

	async def get(self, meter_id: UUID) -> Optional[Meter]:
		result = await self.session.execute(select(Meter).where(Meter.id == meter_id))
		return result.scalar_one_or_none()

	async def get_by_number(self, number: str) -> Optional[Meter]:
		result = await self.session.execute(select(Meter).where(Meter.number == number))
		return result.scalar_one_or_none()

	async def list(self, query: MeterQuery = MeterQuery()) -> List[Meter]:
		stmt = select(Meter)

		# Apply filters
		filters = []
		if query.search:
			filters.append(or_(
				Meter.name.ilike(f"%{query.search}%"),
				Meter.number.ilike(f"%{query.search}%"),
				Meter.location.ilike(f"%{query.search}%")
			))
		if query.status:
			filters.append(Meter.status == query.status)
		if query.facility_id:
			filters.append(Meter.facility_id == query.facility_id)
		if query.kind:
			filters.append(Meter.kind == query.kind)

		if filters:
			stmt = stmt.where(*filters)

		result = await self.session.execute(stmt.order_by(Meter.name.asc()))
		return list(result.scalars().all())

	async def add(self, meter: Meter) -> Meter:
		self.session.add(meter)
		await self._commit("create meter")
		return meter

	async def save(self, meter: Meter) -> Meter:
		self.session.add(meter)
		await self._commit("update meter")
		return meter

	async def delete(self, meter: Meter) -> None:
		await self.session.delete(meter)
		await self._commit("delete meter")

	async def save_reading(self, meter: Meter, reading: Reading) -> Reading:
		# Single commit: the meter update and the reading land together or not at all
		self.session.add(meter)
		self.session.add(reading)
		await self._commit("record reading")
		return reading

	async def list_readings(self, query: ReadingQuery = ReadingQuery()) -> Tuple[int, List[Reading]]:
		stmt = select(Reading)

		filters = []
		if query.meter_id:
			filters.append(Reading.meter_id == query.meter_id)
		if query.start_date:
			filters.append(Reading.reading_date >= query.start_date)
		if query.end_date:
			filters.append(Reading.reading_date <= query.end_date)
		if filters:
			stmt = stmt.where(*filters)

		# Get total count
		total = await self.session.scalar(select(func.count()).select_from(stmt.subquery()))

		stmt = stmt.order_by(Reading.reading_date.desc(), Reading.created_at.desc()).offset(query.skip)
		if query.limit is not None:
			stmt = stmt.limit(query.limit)
		result = await self.session.execute(stmt)
		return total or 0, list(result.scalars().all())

	async def count_readings(self, meter_id: UUID) -> int:
		total = await self.session.scalar(
			select(func.count()).select_from(Reading).where(Reading.meter_id == meter_id)
		)
		return total or 0

	async def reset_readings(self) -> int:
		result = await self.session.execute(
			update(Meter).values(current_reading=0.0, previous_reading=0.0)
		)
		await self._commit("reset meter readings")
		return result.rowcount

	async def facility_names(self) -> Dict[UUID, str]:
		result = await self.session.execute(select(Facility.id, Facility.name))
		return {row.id: row.name for row in result}
