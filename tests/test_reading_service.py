# =====================================
# tests/test_reading_service.py
# =====================================
import uuid
from datetime import date, datetime

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import InvalidReadingError, MeterNotFoundError, StorageError, ValidationError
from app.models.reading import Reading
from app.repositories.meter_repository import SQLAlchemyMeterRepository
from app.services.reading_service import ReadingService


def _by_number(repository, number):
	return next(m for m in repository.meters.values() if m.number == number)


@pytest.mark.asyncio
async def test_submit_reading_moves_current_to_previous(memory_repository):
	heat = _by_number(memory_repository, "H-001")
	service = ReadingService(memory_repository)

	result = await service.submit_reading(heat.id, date(2026, 2, 28), 1300)

	assert heat.previous_reading == 1250.5
	assert heat.current_reading == 1300
	assert heat.last_reading_date == date(2026, 2, 28)
	assert result.consumption == 49.5
	assert result.consumption_equivalent == 49.5

	assert len(memory_repository.readings) == 1
	event = memory_repository.readings[0]
	assert event.meter_id == heat.id
	assert event.reading_value == 1300
	assert event.consumption == pytest.approx(49.5)
	assert event.reading_date == date(2026, 2, 28)


@pytest.mark.asyncio
async def test_submit_gas_reading_reports_energy_equivalent(memory_repository):
	gas = _by_number(memory_repository, "G-001")
	service = ReadingService(memory_repository)

	result = await service.submit_reading(gas.id, date(2026, 2, 28), 15620)

	assert result.consumption == 200.0
	assert result.consumption_equivalent == 2.11


@pytest.mark.asyncio
async def test_submit_lower_value_records_negative_consumption(memory_repository):
	heat = _by_number(memory_repository, "H-001")
	service = ReadingService(memory_repository)

	result = await service.submit_reading(heat.id, date(2026, 2, 28), 10)

	assert result.consumption == -1240.5
	assert heat.previous_reading == 1250.5


@pytest.mark.asyncio
async def test_submit_datetime_is_truncated_to_date(memory_repository):
	heat = _by_number(memory_repository, "H-001")
	service = ReadingService(memory_repository)

	await service.submit_reading(heat.id, datetime(2026, 2, 28, 17, 45), 1300)

	assert heat.last_reading_date == date(2026, 2, 28)


@pytest.mark.asyncio
async def test_negative_reading_leaves_meter_unchanged(memory_repository):
	heat = _by_number(memory_repository, "H-001")
	service = ReadingService(memory_repository)

	with pytest.raises(InvalidReadingError) as exc_info:
		await service.submit_reading(heat.id, date(2026, 2, 28), -5)

	assert exc_info.value.meter_id == heat.id
	assert heat.previous_reading == 1200.0
	assert heat.current_reading == 1250.5
	assert heat.last_reading_date == date(2026, 1, 31)
	assert memory_repository.readings == []


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["abc", None, float("nan"), float("inf"), True])
async def test_non_numeric_reading_is_rejected(memory_repository, bad):
	heat = _by_number(memory_repository, "H-001")
	service = ReadingService(memory_repository)

	with pytest.raises(InvalidReadingError):
		await service.submit_reading(heat.id, date(2026, 2, 28), bad)

	assert heat.current_reading == 1250.5
	assert memory_repository.readings == []


@pytest.mark.asyncio
async def test_invalid_date_is_rejected(memory_repository):
	heat = _by_number(memory_repository, "H-001")
	service = ReadingService(memory_repository)

	with pytest.raises(ValidationError):
		await service.submit_reading(heat.id, "yesterday", 1300)

	assert heat.current_reading == 1250.5


@pytest.mark.asyncio
async def test_unknown_meter(memory_repository):
	service = ReadingService(memory_repository)

	with pytest.raises(MeterNotFoundError):
		await service.submit_reading(uuid.uuid4(), date(2026, 2, 28), 10)

	assert memory_repository.readings == []


@pytest.mark.asyncio
async def test_malformed_stored_reading_blocks_submission(memory_repository, meter_factory):
	broken = meter_factory(number="B-001", current_reading=None)
	await memory_repository.add(broken)
	service = ReadingService(memory_repository)

	with pytest.raises(InvalidReadingError):
		await service.submit_reading(broken.id, date(2026, 2, 28), 10)

	assert broken.previous_reading == 0.0
	assert memory_repository.readings == []


@pytest.mark.asyncio
async def test_meter_history_newest_first(memory_repository):
	heat = _by_number(memory_repository, "H-001")
	service = ReadingService(memory_repository)

	await service.submit_reading(heat.id, date(2026, 2, 1), 1260)
	await service.submit_reading(heat.id, date(2026, 3, 1), 1280)

	total, readings = await service.meter_history(heat.id)

	assert total == 2
	assert [r.reading_date for r in readings] == [date(2026, 3, 1), date(2026, 2, 1)]

	with pytest.raises(MeterNotFoundError):
		await service.meter_history(uuid.uuid4())


@pytest.mark.asyncio
async def test_consumption_stats_trend_uses_reading_events(memory_repository):
	heat = _by_number(memory_repository, "H-001")
	gas = _by_number(memory_repository, "G-001")
	service = ReadingService(memory_repository)

	await service.submit_reading(heat.id, date(2026, 2, 2), 1260.5)
	await service.submit_reading(gas.id, date(2026, 2, 2), 15520)
	await service.submit_reading(heat.id, date(2026, 2, 3), 1261.5)

	stats = await service.consumption_stats(date(2026, 2, 1), date(2026, 2, 3))

	assert stats.start_date == date(2026, 2, 1)
	assert stats.end_date == date(2026, 2, 3)
	assert [p.consumption for p in stats.daily_trend] == [0.0, 11.055, 1.0]
	assert {row.name for row in stats.per_meter} == {"District heating", "Boiler room gas"}


@pytest.mark.asyncio
async def test_consumption_stats_rejects_inverted_window(memory_repository):
	service = ReadingService(memory_repository)

	with pytest.raises(ValidationError):
		await service.consumption_stats(date(2026, 3, 1), date(2026, 2, 1))


@pytest.mark.asyncio
async def test_storage_failure_persists_nothing(db_session, heat_meter, monkeypatch):
	async def failing_commit():
		raise SQLAlchemyError("disk I/O error")

	monkeypatch.setattr(db_session, "commit", failing_commit)
	service = ReadingService(SQLAlchemyMeterRepository(db_session))

	with pytest.raises(StorageError):
		await service.submit_reading(heat_meter.id, date(2026, 2, 28), 1300)
	monkeypatch.undo()

	# Reload from the database
	await db_session.refresh(heat_meter)
	assert heat_meter.previous_reading == 1200.0
	assert heat_meter.current_reading == 1250.5
	assert heat_meter.last_reading_date is None
	assert await db_session.scalar(select(func.count()).select_from(Reading)) == 0
