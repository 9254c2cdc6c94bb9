import io
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, Depends, HTTPException, status, UploadFile, File
from fastapi.responses import StreamingResponse

from app.api.dependencies import get_meter_service, get_reading_service
from app.auth.dependencies import get_current_user, require_manager, get_current_admin
from app.config import settings
from app.models.meter import MeterKind, MeterStatus
from app.models.user import User
from app.repositories.meter_repository import MeterQuery
from app.schemas.base import PaginatedResponse
from app.schemas.meter import MeterResponse, MeterCreate, MeterUpdate, MeterImportResponse, MeterListResponse, \
    ResetReadingsResponse
from app.schemas.reading import ReadingResponse, ReadingSubmit, ReadingSubmitResponse
from app.schemas.stats import OverviewStatsResponse, ConsumptionStatsResponse
from app.services.consumption import MeterFilter
from app.services.export_service import ExportService
from app.services.meter_service import MeterService, meter_to_response
from app.services.reading_service import ReadingService

router = APIRouter()
logger = logging.getLogger(__name__)


def _value(enum_member):
    return enum_member.value if enum_member is not None else None


@router.get("/", response_model=MeterListResponse)
async def list_meters(
        search: Optional[str] = None,
        status: Optional[MeterStatus] = None,
        facility_id: Optional[UUID] = None,
        kind: Optional[MeterKind] = None,
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(get_current_user)
):
    """List meters with their consumption; every status is returned unless filtered"""
    meters = await service.list_meters(MeterQuery(
        search=search,
        status=_value(status),
        facility_id=facility_id,
        kind=_value(kind),
    ))
    return MeterListResponse(total=len(meters), data=meters)


@router.get("/stats/overview", response_model=OverviewStatsResponse)
async def get_overview_stats(
        status: Optional[MeterStatus] = None,
        kind: Optional[MeterKind] = None,
        facility_id: Optional[UUID] = None,
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(get_current_user)
):
    """
    Dashboard statistics. Only Active meters contribute consumption;
    totals are in MWh with gas converted at the fixed factor.
    """
    stats = await service.overview_stats(MeterFilter(
        status=_value(status),
        kind=_value(kind),
        facility_id=facility_id,
    ))
    return OverviewStatsResponse.model_validate(stats)


@router.get("/stats/consumption", response_model=ConsumptionStatsResponse)
async def get_consumption_stats(
        start_date: Optional[date] = Query(None, description="First day of the trend (YYYY-MM-DD)"),
        end_date: Optional[date] = Query(None, description="Last day of the trend (YYYY-MM-DD)"),
        service: ReadingService = Depends(get_reading_service),
        current_user=Depends(get_current_user)
):
    """Per-meter consumption and a daily trend computed from recorded readings"""
    stats = await service.consumption_stats(start_date, end_date)
    return ConsumptionStatsResponse.model_validate(stats)


@router.get("/export/excel")
async def export_meters_excel(
        status: Optional[MeterStatus] = None,
        facility_id: Optional[UUID] = None,
        kind: Optional[MeterKind] = None,
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(get_current_user)
):
    """Download meters and consumption as an XLSX workbook"""
    meters = await service.list_meters(MeterQuery(
        status=_value(status), facility_id=facility_id, kind=_value(kind)
    ))
    stats = await service.overview_stats(MeterFilter(
        status=_value(status), kind=_value(kind), facility_id=facility_id
    ))
    buffer = ExportService().export_meters(meters, stats)

    filename = f"meters_export_{date.today().strftime('%Y%m%d')}.xlsx"
    return StreamingResponse(
        io.BytesIO(buffer.getvalue()),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=MeterImportResponse)
async def import_meters(
        file: UploadFile = File(...),
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(require_manager)
):
    """Register meters from an XLSX file"""
    content = await file.read()
    if len(content) > settings.MAX_IMPORT_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Import file too large"
        )

    result = await service.import_from_file(content, file.filename or "")
    logger.info(f"Meters import by {current_user.username}: {result['success']} success, {result['failed']} failed")
    return result


@router.post("/reset-readings", response_model=ResetReadingsResponse)
async def reset_readings(
        service: MeterService = Depends(get_meter_service),
        current_user: User = Depends(get_current_admin)
):
    """Set current and previous readings of every meter to 0"""
    changes = await service.reset_readings()
    return ResetReadingsResponse(
        changes=changes,
        message=f"All meter readings reset to 0 ({changes} meter(s) updated)"
    )


@router.post("/", response_model=MeterResponse, status_code=status.HTTP_201_CREATED)
async def create_meter(
        meter_data: MeterCreate,
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(require_manager)
):
    """Register a new meter"""
    return await service.create_meter(meter_data)


@router.get("/{meter_id}", response_model=MeterResponse)
async def get_meter(
        meter_id: UUID,
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(get_current_user)
):
    """Get a specific meter by ID"""
    return await service.get_meter(meter_id)


@router.patch("/{meter_id}", response_model=MeterResponse)
async def update_meter(
        meter_id: UUID,
        meter_update: MeterUpdate,
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(require_manager)
):
    """Update a meter; omitted fields are left unchanged"""
    return await service.update_meter(meter_id, meter_update)


@router.delete("/{meter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meter(
        meter_id: UUID,
        cascade: bool = Query(False, description="Also delete the meter's reading history"),
        service: MeterService = Depends(get_meter_service),
        current_user=Depends(require_manager)
):
    """Delete a meter"""
    await service.delete_meter(meter_id, cascade=cascade)


@router.post("/{meter_id}/readings", response_model=ReadingSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_reading(
        meter_id: UUID,
        body: ReadingSubmit,
        service: ReadingService = Depends(get_reading_service),
        meters: MeterService = Depends(get_meter_service),
        current_user: User = Depends(get_current_user)
):
    """Record a new cumulative reading; the previous current value becomes the previous reading"""
    result = await service.submit_reading(
        meter_id,
        reading_date=body.reading_date,
        reading_value=body.reading_value,
        notes=body.notes,
        user_id=current_user.id,
    )
    meter = meter_to_response(result.meter, await meters.repository.facility_names())

    message = f"Reading recorded. Consumption: {result.consumption:.2f} {meter.unit}"
    if meter.kind == MeterKind.GAS:
        message += f" ({result.consumption_equivalent:.3f} MWh)"

    return ReadingSubmitResponse(
        message=message,
        meter=meter,
        consumption=result.consumption,
        consumption_equivalent=result.consumption_equivalent,
        reading=ReadingResponse.model_validate(result.reading),
    )


@router.get("/{meter_id}/readings", response_model=PaginatedResponse)
async def list_meter_readings(
        meter_id: UUID,
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=1000),
        service: ReadingService = Depends(get_reading_service),
        current_user=Depends(get_current_user)
):
    """Reading history of a meter, newest first"""
    total, readings = await service.meter_history(meter_id, skip=skip, limit=limit)
    return PaginatedResponse(
        total=total,
        skip=skip,
        limit=limit,
        data=[ReadingResponse.model_validate(r) for r in readings]
    )
