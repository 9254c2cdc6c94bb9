# =====================================
# tests/test_meter_service.py
# =====================================
import io
import uuid
from datetime import date

import pytest
from openpyxl import Workbook

from app.core.exceptions import ConflictError, DuplicateError, FacilityNotFoundError, MeterNotFoundError, \
	ValidationError
from app.models.meter import MeterKind, MeterStatus
from app.schemas.meter import MeterCreate, MeterUpdate
from app.services.consumption import MeterFilter
from app.services.meter_service import MeterService
from app.services.reading_service import ReadingService


def _workbook(rows) -> bytes:
	wb = Workbook()
	ws = wb.active
	for row in rows:
		ws.append(row)
	buffer = io.BytesIO()
	wb.save(buffer)
	return buffer.getvalue()


@pytest.mark.asyncio
async def test_create_meter(repository_factory):
	service = MeterService(repository_factory())

	meter = await service.create_meter(MeterCreate(
		name="Boiler room gas", number="G-100", kind="gas", unit="m³",
		previous_reading=15200, current_reading=15420,
	))

	assert meter.number == "G-100"
	assert meter.kind == MeterKind.GAS
	assert meter.status == MeterStatus.ACTIVE
	assert meter.consumption == 220.0
	assert meter.consumption_equivalent == 2.321
	assert meter.conversion_note == "220 m³ = 2.321 MWh"


@pytest.mark.asyncio
async def test_create_electric_meter_gets_default_metadata(repository_factory):
	service = MeterService(repository_factory())

	meter = await service.create_meter(MeterCreate(
		name="Main board", number="E-100", kind="electric", unit="MWh",
		meter_metadata={"voltage": 400},
	))

	assert meter.meter_metadata == {"voltage": 400, "meter_type": "Digital", "max_capacity": 100.0}


@pytest.mark.asyncio
async def test_create_duplicate_number(memory_repository):
	service = MeterService(memory_repository)

	with pytest.raises(DuplicateError):
		await service.create_meter(MeterCreate(name="Other", number="H-001", kind="heat", unit="MWh"))

	assert len(memory_repository.meters) == 2


@pytest.mark.asyncio
async def test_create_with_unknown_facility(repository_factory):
	service = MeterService(repository_factory())

	with pytest.raises(FacilityNotFoundError):
		await service.create_meter(MeterCreate(
			name="Heat", number="H-9", kind="heat", unit="MWh", facility_id=uuid.uuid4()
		))


@pytest.mark.asyncio
async def test_update_keeps_omitted_fields(memory_repository):
	heat = await memory_repository.get_by_number("H-001")
	service = MeterService(memory_repository)

	updated = await service.update_meter(heat.id, MeterUpdate(location="Basement", notes=None))

	assert updated.location == "Basement"
	assert updated.name == "District heating"
	assert updated.current_reading == 1250.5
	assert updated.consumption == 50.5


@pytest.mark.asyncio
async def test_update_to_taken_number(memory_repository):
	heat = await memory_repository.get_by_number("H-001")
	service = MeterService(memory_repository)

	with pytest.raises(DuplicateError):
		await service.update_meter(heat.id, MeterUpdate(number="G-001"))

	assert heat.number == "H-001"


@pytest.mark.asyncio
async def test_update_unknown_meter(memory_repository):
	with pytest.raises(MeterNotFoundError):
		await MeterService(memory_repository).update_meter(uuid.uuid4(), MeterUpdate(name="x"))


@pytest.mark.asyncio
async def test_delete_meter_with_readings_requires_cascade(memory_repository):
	heat = await memory_repository.get_by_number("H-001")
	await ReadingService(memory_repository).submit_reading(heat.id, date(2026, 2, 28), 1300)
	service = MeterService(memory_repository)

	with pytest.raises(ConflictError):
		await service.delete_meter(heat.id)
	assert heat.id in memory_repository.meters

	await service.delete_meter(heat.id, cascade=True)
	assert heat.id not in memory_repository.meters
	assert memory_repository.readings == []


@pytest.mark.asyncio
async def test_delete_meter_without_readings(memory_repository):
	gas = await memory_repository.get_by_number("G-001")
	service = MeterService(memory_repository)

	await service.delete_meter(gas.id)

	with pytest.raises(MeterNotFoundError):
		await service.get_meter(gas.id)


@pytest.mark.asyncio
async def test_reset_readings(memory_repository):
	service = MeterService(memory_repository)

	assert await service.reset_readings() == 2
	stats = await service.overview_stats()
	assert stats.total_consumption_equivalent == 0.0


@pytest.mark.asyncio
async def test_overview_stats(memory_repository):
	service = MeterService(memory_repository)

	stats = await service.overview_stats()

	assert stats.count_active == 2
	assert stats.total_consumption_equivalent == pytest.approx(52.821)
	assert stats.average_consumption == pytest.approx(26.4105)

	gas_only = await service.overview_stats(MeterFilter(kind="gas"))
	assert gas_only.total_meters == 1
	assert gas_only.total_consumption_equivalent == pytest.approx(2.321)


@pytest.mark.asyncio
async def test_overview_stats_labels_facilities(repository_factory, meter_factory):
	facility_id = uuid.uuid4()
	meter = meter_factory(facility_id=facility_id, current_reading=12.0)
	service = MeterService(repository_factory([meter], facilities={facility_id: "Town Hall"}))

	stats = await service.overview_stats()

	assert stats.by_facility[0].key == str(facility_id)
	assert stats.by_facility[0].label == "Town Hall"


@pytest.mark.asyncio
async def test_import_from_workbook(memory_repository):
	content = _workbook([
		["Name", "Number", "Kind", "Unit", "Location", "Previous reading", "Current reading", "Installation date", "Status"],
		["School gas", "G-200", "Gas", None, "Cellar", 100, "150,5", "2020-05-01", None],
		["Gym heat", "H-200", "heat", "MWh", None, None, 12, None, "Inactive"],
		["Duplicate", "H-001", "heat", "MWh", None, 0, 0, None, None],
		["No kind", "X-1", None, None, None, None, None, None, None],
		["Bad kind", "X-2", "water", None, None, None, None, None, None],
		[None, None, None, None, None, None, None, None, None],
	])
	service = MeterService(memory_repository)

	result = await service.import_from_file(content, "meters.xlsx")

	assert result["success"] == 2
	assert result["failed"] == 3
	assert len(result["errors"]) == 3
	assert "H-001" in result["errors"][0]

	school = await memory_repository.get_by_number("G-200")
	assert school.unit == "m³"
	assert school.current_reading == 150.5
	assert school.installation_date == date(2020, 5, 1)
	gym = await memory_repository.get_by_number("H-200")
	assert gym.status == "Inactive"


@pytest.mark.asyncio
async def test_import_rejects_missing_columns(repository_factory):
	content = _workbook([["Name", "Number"], ["Heat", "H-1"]])

	with pytest.raises(ValidationError):
		await MeterService(repository_factory()).import_from_file(content, "meters.xlsx")


@pytest.mark.asyncio
async def test_import_rejects_other_formats(repository_factory):
	with pytest.raises(ValidationError):
		await MeterService(repository_factory()).import_from_file(b"a,b", "meters.csv")
