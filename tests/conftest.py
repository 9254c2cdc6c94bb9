import os

# Configure the app for tests before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RUN_STARTUP_CHECKS", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from datetime import date
from typing import AsyncGenerator, Dict, List, Optional, Tuple
from uuid import UUID

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_session
from app.auth.jwt import auth_service
from app.models.base import utcnow
from app.models.facility import Facility
from app.models.meter import Meter
from app.models.reading import Reading
from app.models.user import User, UserRole
from app.repositories.meter_repository import MeterRepository, MeterQuery, ReadingQuery

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
	"""Create a fresh in-memory database per test"""
	engine = create_async_engine(
		TEST_DATABASE_URL,
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
	)

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)

	yield engine

	await engine.dispose()


@pytest.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
	"""Create a test database session"""
	async_session = async_sessionmaker(
		engine, class_=AsyncSession, expire_on_commit=False
	)

	async with async_session() as session:
		yield session
		await session.rollback()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""Create a test client"""

	async def override_get_session():
		yield db_session

	app.dependency_overrides[get_session] = override_get_session

	async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
		yield client

	app.dependency_overrides.clear()


async def _create_user(session: AsyncSession, username: str, password: str, role: UserRole) -> User:
	user = User(
		username=username,
		hashed_password=auth_service.hash_password(password),
		full_name=username.capitalize(),
		role=role,
		is_active=True
	)
	session.add(user)
	await session.commit()
	return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
	return await _create_user(db_session, "admin", "adminpass123", UserRole.ADMIN)


@pytest.fixture
async def manager_user(db_session: AsyncSession) -> User:
	return await _create_user(db_session, "manager", "managerpass123", UserRole.MANAGER)


@pytest.fixture
async def technician_user(db_session: AsyncSession) -> User:
	return await _create_user(db_session, "technician", "techpass123", UserRole.TECHNICIAN)


def _token(user: User) -> str:
	return auth_service.create_access_token({"sub": str(user.id), "role": user.role})


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
	return {"Authorization": f"Bearer {_token(admin_user)}"}


@pytest.fixture
def manager_headers(manager_user: User) -> dict:
	return {"Authorization": f"Bearer {_token(manager_user)}"}


@pytest.fixture
def technician_headers(technician_user: User) -> dict:
	return {"Authorization": f"Bearer {_token(technician_user)}"}


@pytest.fixture
async def facility(db_session: AsyncSession) -> Facility:
	facility = Facility(name="Town Hall", type="Office", location="Main Street 1", status="Active")
	db_session.add(facility)
	await db_session.commit()
	return facility


@pytest.fixture
async def gas_meter(db_session: AsyncSession, facility: Facility) -> Meter:
	meter = Meter(
		name="Boiler room gas",
		number="G-001",
		kind="gas",
		unit="m³",
		facility_id=facility.id,
		previous_reading=15200.0,
		current_reading=15420.0,
		status="Active",
		meter_metadata={},
	)
	db_session.add(meter)
	await db_session.commit()
	return meter


@pytest.fixture
async def heat_meter(db_session: AsyncSession) -> Meter:
	meter = Meter(
		name="District heating",
		number="H-001",
		kind="heat",
		unit="MWh",
		previous_reading=1200.0,
		current_reading=1250.5,
		status="Active",
		meter_metadata={},
	)
	db_session.add(meter)
	await db_session.commit()
	return meter


# =====================================
# In-memory repository for service tests
# =====================================

def make_meter(**overrides) -> Meter:
	"""Transient meter with every column populated"""
	fields = dict(
		id=uuid.uuid4(),
		name="Meter",
		number=f"M-{uuid.uuid4().hex[:8]}",
		kind="heat",
		unit="MWh",
		location=None,
		facility_id=None,
		previous_reading=0.0,
		current_reading=0.0,
		installation_date=None,
		last_reading_date=None,
		status="Active",
		notes=None,
		meter_metadata={},
		created_at=utcnow(),
		updated_at=utcnow(),
	)
	fields.update(overrides)
	return Meter(**fields)


class InMemoryMeterRepository(MeterRepository):
	def __init__(self, meters=(), facilities: Optional[Dict[UUID, str]] = None):
		self.meters: Dict[UUID, Meter] = {m.id: m for m in meters}
		self.readings: List[Reading] = []
		self.facilities = dict(facilities or {})

	async def get(self, meter_id: UUID) -> Optional[Meter]:
		return self.meters.get(meter_id)

	async def get_by_number(self, number: str) -> Optional[Meter]:
		return next((m for m in self.meters.values() if m.number == number), None)

	async def list(self, query: MeterQuery = MeterQuery()) -> List[Meter]:
		meters = [
			m for m in self.meters.values()
			if (query.status is None or m.status == query.status)
			and (query.kind is None or m.kind == query.kind)
			and (query.facility_id is None or m.facility_id == query.facility_id)
			and (not query.search or query.search.lower() in f"{m.name} {m.number} {m.location or ''}".lower())
		]
		return sorted(meters, key=lambda m: m.name)

	async def add(self, meter: Meter) -> Meter:
		meter.id = meter.id or uuid.uuid4()
		meter.created_at = meter.created_at or utcnow()
		meter.updated_at = meter.updated_at or utcnow()
		self.meters[meter.id] = meter
		return meter

	async def save(self, meter: Meter) -> Meter:
		meter.updated_at = utcnow()
		self.meters[meter.id] = meter
		return meter

	async def delete(self, meter: Meter) -> None:
		self.meters.pop(meter.id, None)
		self.readings = [r for r in self.readings if r.meter_id != meter.id]

	async def save_reading(self, meter: Meter, reading: Reading) -> Reading:
		reading.id = reading.id or uuid.uuid4()
		reading.created_at = reading.created_at or utcnow()
		await self.save(meter)
		self.readings.append(reading)
		return reading

	async def list_readings(self, query: ReadingQuery = ReadingQuery()) -> Tuple[int, List[Reading]]:
		readings = [
			r for r in self.readings
			if (query.meter_id is None or r.meter_id == query.meter_id)
			and (query.start_date is None or r.reading_date >= query.start_date)
			and (query.end_date is None or r.reading_date <= query.end_date)
		]
		readings.sort(key=lambda r: (r.reading_date, r.created_at), reverse=True)
		page = readings[query.skip:]
		if query.limit is not None:
			page = page[:query.limit]
		return len(readings), page

	async def count_readings(self, meter_id: UUID) -> int:
		return sum(1 for r in self.readings if r.meter_id == meter_id)

	async def reset_readings(self) -> int:
		for meter in self.meters.values():
			meter.current_reading = 0.0
			meter.previous_reading = 0.0
		return len(self.meters)

	async def facility_names(self) -> Dict[UUID, str]:
		return dict(self.facilities)


@pytest.fixture
def memory_repository() -> InMemoryMeterRepository:
	heat = make_meter(name="District heating", number="H-001", kind="heat", unit="MWh",
					  previous_reading=1200.0, current_reading=1250.5,
					  last_reading_date=date(2026, 1, 31))
	gas = make_meter(name="Boiler room gas", number="G-001", kind="gas", unit="m³",
					 previous_reading=15200.0, current_reading=15420.0)
	return InMemoryMeterRepository([heat, gas])


@pytest.fixture
def meter_factory():
	return make_meter


@pytest.fixture
def repository_factory():
	return InMemoryMeterRepository
