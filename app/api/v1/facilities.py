import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_meter_service
from app.auth.dependencies import get_current_user, require_manager
from app.database import get_session
from app.schemas.facility import FacilityCreate, FacilityListResponse, FacilityResponse, FacilityUpdate
from app.schemas.stats import OverviewStatsResponse
from app.services.consumption import MeterFilter
from app.services.facility_service import FacilityService
from app.services.meter_service import MeterService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_facility_service(session: AsyncSession = Depends(get_session)) -> FacilityService:
	return FacilityService(session)


@router.get("/", response_model=FacilityListResponse)
async def list_facilities(
		search: Optional[str] = None,
		status: Optional[str] = None,
		service: FacilityService = Depends(get_facility_service),
		current_user=Depends(get_current_user)
):
	facilities = await service.list_facilities(search=search, status=status)
	return FacilityListResponse(total=len(facilities), data=facilities)


@router.post("/", response_model=FacilityResponse, status_code=status.HTTP_201_CREATED)
async def create_facility(
		data: FacilityCreate,
		service: FacilityService = Depends(get_facility_service),
		current_user=Depends(require_manager)
):
	return await service.create_facility(data)


@router.get("/{facility_id}", response_model=FacilityResponse)
async def get_facility(
		facility_id: UUID,
		service: FacilityService = Depends(get_facility_service),
		current_user=Depends(get_current_user)
):
	return await service.get_facility(facility_id)


@router.patch("/{facility_id}", response_model=FacilityResponse)
async def update_facility(
		facility_id: UUID,
		data: FacilityUpdate,
		service: FacilityService = Depends(get_facility_service),
		current_user=Depends(require_manager)
):
	return await service.update_facility(facility_id, data)


@router.delete("/{facility_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_facility(
		facility_id: UUID,
		cascade: bool = Query(False, description="Also delete the facility's meters and their readings"),
		service: FacilityService = Depends(get_facility_service),
		current_user=Depends(require_manager)
):
	await service.delete_facility(facility_id, cascade=cascade)


@router.get("/{facility_id}/stats", response_model=OverviewStatsResponse)
async def get_facility_stats(
		facility_id: UUID,
		service: FacilityService = Depends(get_facility_service),
		meters: MeterService = Depends(get_meter_service),
		current_user=Depends(get_current_user)
):
	"""Consumption overview restricted to one facility"""
	await service.get_facility(facility_id)
	stats = await meters.overview_stats(MeterFilter(facility_id=facility_id))
	return OverviewStatsResponse.model_validate(stats)
