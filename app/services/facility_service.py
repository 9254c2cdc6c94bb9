import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, or_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, FacilityNotFoundError, StorageError
from app.models.facility import Facility
from app.models.meter import Meter
from app.schemas.facility import FacilityCreate, FacilityResponse, FacilityUpdate

logger = logging.getLogger(__name__)


class FacilityService:
	def __init__(self, session: AsyncSession):
		self.session = session

	async def _commit(self, action: str) -> None:
		try:
			await self.session.commit()
		except SQLAlchemyError as e:
			await self.session.rollback()
			logger.error(f"Storage failure while trying to {action}: {e}")
			raise StorageError(f"Storage failure while trying to {action}")

	async def _meter_counts(self) -> Dict[UUID, int]:
		result = await self.session.execute(
			select(Meter.facility_id, func.count()).where(Meter.facility_id.is_not(None)).group_by(Meter.facility_id)
		)
		return {facility_id: count for facility_id, count in result}

	def _to_response(self, facility: Facility, meter_count: int) -> FacilityResponse:
		response = FacilityResponse.model_validate(facility)
		response.meter_count = meter_count
		return response

	async def _get_or_404(self, facility_id: UUID) -> Facility:
		result = await self.session.execute(select(Facility).where(Facility.id == facility_id))
		facility = result.scalar_one_or_none()
		if not facility:
			raise FacilityNotFoundError(facility_id)
		return facility

	async def list_facilities(self, search: Optional[str] = None, status: Optional[str] = None) -> List[FacilityResponse]:
		query = select(Facility)

		filters = []
		if search:
			filters.append(or_(
				Facility.name.ilike(f"%{search}%"),
				Facility.location.ilike(f"%{search}%"),
				Facility.address.ilike(f"%{search}%")
			))
		if status:
			filters.append(Facility.status == status)
		if filters:
			query = query.where(*filters)

		result = await self.session.execute(query.order_by(Facility.name.asc()))
		counts = await self._meter_counts()
		return [self._to_response(f, counts.get(f.id, 0)) for f in result.scalars().all()]

	async def get_facility(self, facility_id: UUID) -> FacilityResponse:
		facility = await self._get_or_404(facility_id)
		counts = await self._meter_counts()
		return self._to_response(facility, counts.get(facility.id, 0))

	async def create_facility(self, data: FacilityCreate) -> FacilityResponse:
		facility = Facility(**data.model_dump())
		self.session.add(facility)
		await self._commit("create facility")

		logger.info(f"Facility created: {facility.name}")
		return self._to_response(facility, 0)

	async def update_facility(self, facility_id: UUID, data: FacilityUpdate) -> FacilityResponse:
		"""Partial update; unset or null fields keep their stored value"""
		facility = await self._get_or_404(facility_id)
		for field, value in data.model_dump(exclude_unset=True).items():
			if value is not None:
				setattr(facility, field, value)
		await self._commit("update facility")

		logger.info(f"Facility updated: {facility.name}")
		return await self.get_facility(facility.id)

	async def delete_facility(self, facility_id: UUID, cascade: bool = False) -> int:
		"""
		Delete a facility. Facilities with meters are refused unless cascade
		is set, in which case the meters and their readings go too.
		Returns the number of meters removed.
		"""
		facility = await self._get_or_404(facility_id)
		result = await self.session.execute(select(Meter).where(Meter.facility_id == facility.id))
		meters = list(result.scalars().all())

		if meters and not cascade:
			raise ConflictError(
				f"Cannot delete facility with associated records. This facility has {len(meters)} meter(s). "
				"To delete anyway, use cascade deletion.",
				meter_count=len(meters),
			)

		for meter in meters:
			await self.session.delete(meter)
		await self.session.delete(facility)
		await self._commit("delete facility")

		if meters:
			logger.warning(f"Cascade deleted {len(meters)} meter(s) for facility {facility.name}")
		logger.info(f"Facility deleted: {facility.name}")
		return len(meters)
