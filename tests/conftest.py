"""Test configuration and fixtures."""

import os
import uuid

import jwt
import pytest

# Set test settings BEFORE violation_service.core.config is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["APPEAL_MAX_ATTACHMENTS"] = "3"

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from violation_service.core.config import settings
from violation_service.core.constants import (
    OrganizationType,
    UserRole,
    ViolationDetectedBy,
    ViolationSeverity,
    ViolationStatus,
    ViolationType,
)
from violation_service.core.principal import Principal
from violation_service.models.base import Base
from violation_service.models.directory import (
    CleaningArea,
    Driver,
    Organization,
    Polygon,
    Ticket,
    Trip,
    Vehicle,
)
from violation_service.models.appeals import Appeal, AppealStatusLog
from violation_service.models.violations import Violation, ViolationStatusLog


@pytest.fixture
async def engine(tmp_path):
    """One SQLite file per test, created from the ORM metadata."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'violations.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class World:
    """Directory graph used by most tests.

    oversight org -> contractor A -> ticket A -> trip A (driver 1)
    other contractor B (no parent) -> ticket B -> trip B (driver 2)
    trip C has no ticket.
    Only ids are kept so nothing here expires after a rollback.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

        self.oversight_id = uuid.uuid4()
        self.empty_oversight_id = uuid.uuid4()
        self.contractor_a_id = uuid.uuid4()
        self.contractor_b_id = uuid.uuid4()
        self.retired_contractor_id = uuid.uuid4()
        self.driver_1_id = uuid.uuid4()
        self.driver_2_id = uuid.uuid4()
        self.vehicle_id = uuid.uuid4()
        self.area_id = uuid.uuid4()
        self.polygon_id = uuid.uuid4()
        self.ticket_a_id = uuid.uuid4()
        self.ticket_b_id = uuid.uuid4()
        self.trip_a_id = uuid.uuid4()
        self.trip_b_id = uuid.uuid4()
        self.trip_c_id = uuid.uuid4()

    async def seed(self):
        async with self.session_factory() as db:
            db.add_all([
                Organization(id=self.oversight_id, name="KGU ZKH", type=OrganizationType.OVERSIGHT),
                Organization(id=self.empty_oversight_id, name="KGU empty", type=OrganizationType.OVERSIGHT),
                Organization(
                    id=self.contractor_a_id,
                    name="Clean City LLP",
                    type=OrganizationType.CONTRACTOR,
                    parent_org_id=self.oversight_id,
                ),
                Organization(
                    id=self.retired_contractor_id,
                    name="Old Roads LLP",
                    type=OrganizationType.CONTRACTOR,
                    parent_org_id=self.oversight_id,
                    is_active=False,
                ),
                Organization(id=self.contractor_b_id, name="Snow Away LLP", type=OrganizationType.CONTRACTOR),
                Driver(id=self.driver_1_id, full_name="Aibek Nurlanov", phone="+77010000001"),
                Driver(id=self.driver_2_id, full_name="Dana Serikova", phone="+77010000002"),
                Vehicle(id=self.vehicle_id, plate_number="123ABC02", brand="KAMAZ", model="65115"),
                CleaningArea(id=self.area_id, name="Almaly district"),
                Polygon(id=self.polygon_id, name="North landfill"),
            ])
            await db.flush()
            db.add_all([
                Ticket(id=self.ticket_a_id, contractor_id=self.contractor_a_id, cleaning_area_id=self.area_id, status="ACTIVE"),
                Ticket(id=self.ticket_b_id, contractor_id=self.contractor_b_id, status="ACTIVE"),
            ])
            await db.flush()
            db.add_all([
                Trip(
                    id=self.trip_a_id,
                    ticket_id=self.ticket_a_id,
                    driver_id=self.driver_1_id,
                    vehicle_id=self.vehicle_id,
                    polygon_id=self.polygon_id,
                    status="COMPLETED",
                ),
                Trip(id=self.trip_b_id, ticket_id=self.ticket_b_id, driver_id=self.driver_2_id, status="COMPLETED"),
                Trip(id=self.trip_c_id, driver_id=self.driver_1_id, status="NO_TICKET"),
            ])
            await db.commit()

    async def violation(
        self,
        trip_id=None,
        detected_by=ViolationDetectedBy.LPR,
        type=ViolationType.ROUTE_VIOLATION,
        status=ViolationStatus.OPEN,
    ) -> uuid.UUID:
        violation = Violation(
            trip_id=trip_id or self.trip_a_id,
            type=type,
            detected_by=detected_by,
            severity=ViolationSeverity.MEDIUM,
            status=status,
        )
        async with self.session_factory() as db:
            db.add(violation)
            await db.commit()
        return violation.id

    # Principals
    def city(self) -> Principal:
        return Principal(user_id=uuid.uuid4(), org_id=uuid.uuid4(), role=UserRole.CITY_ADMIN)

    def oversight(self) -> Principal:
        return Principal(user_id=uuid.uuid4(), org_id=self.oversight_id, role=UserRole.OVERSIGHT_ADMIN)

    def empty_oversight(self) -> Principal:
        return Principal(user_id=uuid.uuid4(), org_id=self.empty_oversight_id, role=UserRole.OVERSIGHT_ADMIN)

    def contractor_a(self) -> Principal:
        return Principal(user_id=uuid.uuid4(), org_id=self.contractor_a_id, role=UserRole.CONTRACTOR_ADMIN)

    def contractor_b(self) -> Principal:
        return Principal(user_id=uuid.uuid4(), org_id=self.contractor_b_id, role=UserRole.CONTRACTOR_ADMIN)

    def driver_1(self) -> Principal:
        return Principal(
            user_id=uuid.uuid4(), org_id=self.contractor_a_id, role=UserRole.DRIVER, driver_id=self.driver_1_id
        )

    def driver_2(self) -> Principal:
        return Principal(
            user_id=uuid.uuid4(), org_id=self.contractor_b_id, role=UserRole.DRIVER, driver_id=self.driver_2_id
        )

    def technical(self) -> Principal:
        return Principal(user_id=uuid.uuid4(), org_id=uuid.uuid4(), role=UserRole.TECHNICAL_ADMIN)

    def landfill(self) -> Principal:
        return Principal(user_id=uuid.uuid4(), org_id=uuid.uuid4(), role=UserRole.LANDFILL_ADMIN)

    # Fresh reads, independent of the session under test
    async def fetch(self, model, row_id):
        async with self.session_factory() as db:
            return await db.get(model, row_id)

    async def violation_logs(self, violation_id):
        async with self.session_factory() as db:
            result = await db.execute(
                select(ViolationStatusLog)
                .where(ViolationStatusLog.violation_id == violation_id)
                .order_by(ViolationStatusLog.created_at)
            )
            return list(result.scalars().all())

    async def appeal_logs(self, appeal_id):
        async with self.session_factory() as db:
            result = await db.execute(
                select(AppealStatusLog)
                .where(AppealStatusLog.appeal_id == appeal_id)
                .order_by(AppealStatusLog.created_at)
            )
            return list(result.scalars().all())

    async def appeals_for(self, violation_id):
        async with self.session_factory() as db:
            result = await db.execute(select(Appeal).where(Appeal.violation_id == violation_id))
            return list(result.scalars().all())


@pytest.fixture
async def world(session_factory):
    world = World(session_factory)
    await world.seed()
    return world


def make_token(principal: Principal) -> str:
    claims = {"sub": str(principal.user_id), "role": principal.role.value}
    if principal.org_id is not None:
        claims["org_id"] = str(principal.org_id)
    if principal.driver_id is not None:
        claims["driver_id"] = str(principal.driver_id)
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def auth_headers():
    def _headers(principal: Principal) -> dict:
        return {"Authorization": f"Bearer {make_token(principal)}"}

    return _headers
