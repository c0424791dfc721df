"""
Pytest configuration and fixtures.
"""

import os

os.environ.setdefault("IS_PRODUCTION", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from agentworks.models import (
    Agency,
    Base,
    CustomerTalent,
    CustomerTalentStatus,
    Talent,
)


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    # pysqlite's own transaction handling breaks SAVEPOINT, let SQLAlchemy emit BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def make_agency(db_session):
    async def _make(agency_id="agency_a", name="Agency A"):
        agency = Agency(id=agency_id, name=name)
        db_session.add(agency)
        await db_session.flush()
        return agency
    return _make


@pytest.fixture
def make_talent(db_session):
    async def _make(one_id="talent_1", platform="douyin", agency_id=None, rebate_mode=None, name=None):
        talent = Talent(
            one_id=one_id,
            platform=platform,
            name=name or one_id,
            agency_id=agency_id,
            rebate_mode=rebate_mode,
        )
        db_session.add(talent)
        await db_session.flush()
        return talent
    return _make


@pytest.fixture
def make_relation(db_session):
    async def _make(
        customer_id="customer_1",
        one_id="talent_1",
        platform="douyin",
        enabled=False,
        rate=None,
        status=CustomerTalentStatus.ACTIVE,
    ):
        relation = CustomerTalent(
            customer_id=customer_id,
            one_id=one_id,
            platform=platform,
            status=status,
            customer_rebate_enabled=enabled,
            customer_rebate_rate=rate,
        )
        db_session.add(relation)
        await db_session.flush()
        return relation
    return _make
