from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.repositories.meter_repository import MeterRepository, SQLAlchemyMeterRepository
from app.services.meter_service import MeterService
from app.services.reading_service import ReadingService


def get_meter_repository(session: AsyncSession = Depends(get_session)) -> MeterRepository:
	return SQLAlchemyMeterRepository(session)


def get_meter_service(repository: MeterRepository = Depends(get_meter_repository)) -> MeterService:
	return MeterService(repository)


def get_reading_service(repository: MeterRepository = Depends(get_meter_repository)) -> ReadingService:
	return ReadingService(repository)
