# app/services/meter_service.py

from typing import Dict, Any, List, Mapping, Optional
from uuid import UUID
from datetime import date, datetime
import logging, io

from openpyxl import load_workbook

from app.core.exceptions import ConflictError, DuplicateError, FacilityNotFoundError, MeterNotFoundError, ValidationError
from app.models.meter import Meter, MeterKind, MeterStatus, DEFAULT_UNITS
from app.repositories.meter_repository import MeterRepository, MeterQuery
from app.schemas.meter import MeterCreate, MeterResponse, MeterUpdate
from app.services.consumption import MeterFilter, OverviewStats, compute_consumption, summarize

logger = logging.getLogger(__name__)

# Electric meter attributes carried in meter_metadata
ELECTRIC_DEFAULTS = {"meter_type": "Digital", "voltage": 230, "max_capacity": 100.0}

# Import columns (row 1 holds the headers)
IMPORT_COLS = {
    "name": "Name",
    "number": "Number",
    "kind": "Kind",
    "unit": "Unit",
    "location": "Location",
    "previous": "Previous reading",
    "current": "Current reading",
    "installation_date": "Installation date",
    "status": "Status",
}
REQUIRED = [
    IMPORT_COLS["name"],
    IMPORT_COLS["number"],
    IMPORT_COLS["kind"],
]


def _to_str(x):
    if x is None:
        return None
    s = str(x).strip()
    return s or None

def _to_float(x):
    if x is None or str(x).strip() == "":
        return 0.0
    return float(str(x).replace(",", ".").strip())

def _to_date(x):
    if x is None or x == "":
        return None
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    return date.fromisoformat(str(x).strip())


def meter_to_response(meter: Meter, facility_names: Optional[Mapping[UUID, str]] = None) -> MeterResponse:
    """Serialize a meter together with its derived consumption figures"""
    result = compute_consumption(meter)
    return MeterResponse(
        id=meter.id,
        name=meter.name,
        number=meter.number,
        location=meter.location,
        facility_id=meter.facility_id,
        facility_name=(facility_names or {}).get(meter.facility_id),
        kind=meter.kind,
        unit=meter.unit,
        current_reading=meter.current_reading,
        previous_reading=meter.previous_reading,
        installation_date=meter.installation_date,
        last_reading_date=meter.last_reading_date,
        status=meter.status,
        notes=meter.notes,
        meter_metadata=meter.meter_metadata or {},
        consumption=result.consumption,
        consumption_equivalent=result.consumption_equivalent,
        conversion_note=result.conversion_note,
        created_at=meter.created_at,
        updated_at=meter.updated_at,
    )


class MeterService:
    def __init__(self, repository: MeterRepository):
        self.repository = repository

    async def _get_or_404(self, meter_id: UUID) -> Meter:
        meter = await self.repository.get(meter_id)
        if not meter:
            raise MeterNotFoundError(meter_id)
        return meter

    def _check_facility(self, facility_id: Optional[UUID], names: Mapping[UUID, str]) -> None:
        if facility_id is not None and facility_id not in names:
            raise FacilityNotFoundError(facility_id)

    async def list_meters(self, query: MeterQuery = MeterQuery()) -> List[MeterResponse]:
        meters = await self.repository.list(query)
        names = await self.repository.facility_names()
        return [meter_to_response(m, names) for m in meters]

    async def get_meter(self, meter_id: UUID) -> MeterResponse:
        meter = await self._get_or_404(meter_id)
        return meter_to_response(meter, await self.repository.facility_names())

    async def create_meter(self, data: MeterCreate) -> MeterResponse:
        """Register a new meter; the meter number must be unused"""
        if await self.repository.get_by_number(data.number):
            raise DuplicateError(f"Meter number {data.number} already exists", number=data.number)

        names = await self.repository.facility_names()
        self._check_facility(data.facility_id, names)

        fields = data.model_dump()
        metadata = dict(fields.pop("meter_metadata") or {})
        if data.kind == MeterKind.ELECTRIC:
            for key, value in ELECTRIC_DEFAULTS.items():
                metadata.setdefault(key, value)

        meter = Meter(
            **fields,
            meter_metadata=metadata,
        )
        meter.kind = data.kind.value
        meter.status = data.status.value
        await self.repository.add(meter)

        logger.info(f"Meter created: {meter.number} ({meter.kind})")
        return meter_to_response(meter, names)

    async def update_meter(self, meter_id: UUID, data: MeterUpdate) -> MeterResponse:
        """Partial update; fields that are unset or null keep their stored value"""
        meter = await self._get_or_404(meter_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        if "number" in changes and changes["number"] != meter.number:
            other = await self.repository.get_by_number(changes["number"])
            if other and other.id != meter.id:
                raise DuplicateError(f"Meter number {changes['number']} already exists", number=changes["number"])

        names = await self.repository.facility_names()
        self._check_facility(changes.get("facility_id"), names)

        # Update fields
        for field, value in changes.items():
            if isinstance(value, (MeterKind, MeterStatus)):
                value = value.value
            setattr(meter, field, value)

        await self.repository.save(meter)

        logger.info(f"Meter updated: {meter.number}")
        return meter_to_response(meter, names)

    async def delete_meter(self, meter_id: UUID, cascade: bool = False) -> None:
        """Delete a meter; its reading history goes with it only when cascade is set"""
        meter = await self._get_or_404(meter_id)

        reading_count = await self.repository.count_readings(meter.id)
        if reading_count and not cascade:
            raise ConflictError(
                f"Meter {meter.number} has {reading_count} recorded reading(s). "
                "To delete anyway, use cascade deletion.",
                reading_count=reading_count,
            )

        await self.repository.delete(meter)
        logger.info(f"Meter deleted: {meter.number} ({reading_count} reading(s) removed)")

    async def reset_readings(self) -> int:
        changes = await self.repository.reset_readings()
        logger.warning(f"All meter readings reset to 0 ({changes} meter(s))")
        return changes

    async def overview_stats(self, meter_filter: MeterFilter = MeterFilter()) -> OverviewStats:
        meters = await self.repository.list(MeterQuery(
            status=meter_filter.status,
            kind=meter_filter.kind,
            facility_id=meter_filter.facility_id,
        ))
        names = await self.repository.facility_names()
        return summarize(meters, meter_filter, {str(k): v for k, v in names.items()})

    async def import_from_file(self, content: bytes, filename: str) -> Dict[str, Any]:
        """
        Register meters from an XLSX workbook.
        - Row 1 holds the headers, data starts on row 2.
        - Name, Number and Kind are required; Unit defaults to the kind's canonical unit.
        - Rows whose number is already registered are reported and skipped.
        """
        if not filename.lower().endswith(".xlsx"):
            raise ValidationError("Unsupported format: provide an .xlsx file", filename=filename)

        try:
            wb = load_workbook(io.BytesIO(content), data_only=True)
        except Exception as e:
            raise ValidationError(f"Could not read workbook: {e}", filename=filename)
        sheet = wb.active

        headers = [str(c.value).strip() if c.value else None for c in sheet[1]]
        header_index = {h: i for i, h in enumerate(headers) if h}

        missing = [c for c in REQUIRED if c not in header_index]
        if missing:
            raise ValidationError(f"Missing columns: {missing}. Detected columns: {headers}")

        success, failed = 0, 0
        errors: List[str] = []
        meters: List[MeterResponse] = []
        names = await self.repository.facility_names()
        seen_numbers = set()

        for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
            def val(col_name):
                idx = header_index.get(col_name)
                return row[idx] if idx is not None and idx < len(row) else None

            if all(v is None for v in row):
                continue

            try:
                name = _to_str(val(IMPORT_COLS["name"]))
                number = _to_str(val(IMPORT_COLS["number"]))
                kind = _to_str(val(IMPORT_COLS["kind"]))

                if not name or not number or not kind:
                    failed += 1
                    errors.append(f"Row {row_idx}: missing required fields (name/number/kind).")
                    continue

                if number in seen_numbers or await self.repository.get_by_number(number):
                    failed += 1
                    errors.append(f"Row {row_idx}: meter {number} already exists.")
                    continue

                kind = MeterKind(kind.lower())
                data = MeterCreate(
                    name=name,
                    number=number,
                    kind=kind,
                    unit=_to_str(val(IMPORT_COLS["unit"])) or DEFAULT_UNITS[kind],
                    location=_to_str(val(IMPORT_COLS["location"])),
                    previous_reading=_to_float(val(IMPORT_COLS["previous"])),
                    current_reading=_to_float(val(IMPORT_COLS["current"])),
                    installation_date=_to_date(val(IMPORT_COLS["installation_date"])),
                    status=_to_str(val(IMPORT_COLS["status"])) or MeterStatus.ACTIVE,
                )
            except ValueError as e:
                failed += 1
                errors.append(f"Row {row_idx}: {e}")
                continue

            meters.append(await self.create_meter(data))
            seen_numbers.add(number)
            success += 1

        logger.info(f"Import finished: {success} succeeded, {failed} failed")
        return {"success": success, "failed": failed, "errors": errors, "meters": meters}
