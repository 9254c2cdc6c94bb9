import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, Depends

from app.api.dependencies import get_reading_service
from app.auth.dependencies import get_current_user
from app.repositories.meter_repository import ReadingQuery
from app.schemas.base import PaginatedResponse
from app.schemas.reading import ReadingResponse
from app.services.reading_service import ReadingService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=PaginatedResponse)
async def list_readings(
		skip: int = Query(0, ge=0),
		limit: int = Query(100, ge=1, le=1000),
		meter_id: Optional[UUID] = None,
		start_date: Optional[date] = None,
		end_date: Optional[date] = None,
		service: ReadingService = Depends(get_reading_service),
		current_user=Depends(get_current_user)
):
	"""List reading events with filters, newest first"""
	total, readings = await service.list_readings(ReadingQuery(
		meter_id=meter_id,
		start_date=start_date,
		end_date=end_date,
		skip=skip,
		limit=limit,
	))

	return PaginatedResponse(
		total=total,
		skip=skip,
		limit=limit,
		data=[ReadingResponse.model_validate(r) for r in readings]
	)
