# app/core/exceptions.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.monitoring.metrics import app_errors

logger = logging.getLogger(__name__)


class AppError(Exception):
	"""Base class for errors surfaced to API callers"""

	kind = "AppError"
	status_code = status.HTTP_400_BAD_REQUEST

	def __init__(self, message: str, **context):
		super().__init__(message)
		self.message = message
		self.context = context


class ValidationError(AppError):
	kind = "ValidationError"
	status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidReadingError(ValidationError):
	kind = "InvalidReadingError"

	def __init__(self, message: str, meter_id=None, **context):
		super().__init__(message, meter_id=str(meter_id) if meter_id is not None else None, **context)
		self.meter_id = meter_id


class NotFoundError(AppError):
	kind = "NotFoundError"
	status_code = status.HTTP_404_NOT_FOUND


class MeterNotFoundError(NotFoundError):
	kind = "MeterNotFoundError"

	def __init__(self, meter_id):
		super().__init__(f"Meter {meter_id} not found", meter_id=str(meter_id))
		self.meter_id = meter_id


class FacilityNotFoundError(NotFoundError):
	kind = "FacilityNotFoundError"

	def __init__(self, facility_id):
		super().__init__(f"Facility {facility_id} not found", facility_id=str(facility_id))
		self.facility_id = facility_id


class ConflictError(AppError):
	kind = "ConflictError"
	status_code = status.HTTP_409_CONFLICT


class DuplicateError(ConflictError):
	kind = "DuplicateError"


class StorageError(AppError):
	kind = "StorageError"
	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
	app_errors.labels(kind=exc.kind).inc()
	if exc.status_code >= 500:
		logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
	else:
		logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")

	content = {"detail": exc.message, "error": exc.kind}
	context = {k: v for k, v in exc.context.items() if v is not None}
	if context:
		content["context"] = context
	return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
	return JSONResponse(
		status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
		content={
			"detail": jsonable_encoder(exc.errors()),
			"error": ValidationError.kind,
		},
	)


def register_exception_handlers(app: FastAPI) -> None:
	app.add_exception_handler(AppError, app_error_handler)
	app.add_exception_handler(RequestValidationError, request_validation_handler)
