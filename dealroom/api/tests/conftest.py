"""
Test Configuration and Fixtures

Shared fixtures for DEALROOM API tests.
Provides an isolated archive database, an engine on a manual clock,
and bearer headers for every role.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from shared.dealroom_core.clock import ManualClock
from shared.dealroom_core.engine import AccessDecisionEngine
from shared.dealroom_core.models import Document, Grant, Role

from dealroom.api.main import create_app
from dealroom.api.auth.jwt import create_access_token
from dealroom.api.db.models import Base
from dealroom.api.db.session import get_db
from dealroom.api.dependencies import get_engine
from dealroom.api.services.data_room import build_data_room
from dealroom.core.config_manager import ConfigManager


ROOM_ID = "DR-1001"
START = datetime(2026, 1, 30, 12, 0, tzinfo=timezone.utc)
ROOM_EXPIRY = datetime(2026, 2, 15, 0, 0, tzinfo=timezone.utc)

INVESTOR = "lp@fund.com"
MARKET_MAKER = "desk@mm.com"
EXTERNAL = "counsel@law.com"
ISSUER = "cfo@issuer.com"
ADMIN = "ops@dealroom.io"


# ==================== Database Fixtures ====================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(async_engine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_maker() as session:
        yield session
        await session.rollback()


# ==================== Engine Fixtures ====================


@pytest.fixture(scope="function")
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture(scope="function")
def data_room(clock) -> AccessDecisionEngine:
    """Engine with one ACTIVE room and one document."""
    engine = build_data_room(ConfigManager(), clock=clock)
    engine.lifecycle.create_room(ROOM_ID, "D-1001", ROOM_EXPIRY, issuer_org="Issuer Co")
    return engine


@pytest.fixture(scope="function")
def document(data_room) -> Document:
    return data_room.documents.add_document(
        ROOM_ID, "CIM.pdf", 48, folder_path="/Financials", document_id="doc_cim"
    )


@pytest.fixture(scope="function")
def investor_grant(data_room, clock) -> Grant:
    return data_room.grants.create_grant(
        ROOM_ID, Role.INVESTOR, INVESTOR, clock.now() + timedelta(days=30), clock.now()
    )


# ==================== Application Fixtures ====================


@pytest.fixture(scope="function")
def app(data_room, db_session) -> FastAPI:
    """Create FastAPI app wired to the test engine and database."""
    test_app = create_app()

    async def override_get_db():
        yield db_session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_engine] = lambda: data_room
    return test_app


@pytest_asyncio.fixture(scope="function")
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ==================== Auth Fixtures ====================


def bearer(identity: str, role: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(identity, role)}"}


@pytest.fixture
def issuer_headers() -> Dict[str, str]:
    return bearer(ISSUER, "ISSUER")


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return bearer(ADMIN, "ADMIN")


@pytest.fixture
def investor_headers() -> Dict[str, str]:
    return bearer(INVESTOR, "INVESTOR")


@pytest.fixture
def mm_headers() -> Dict[str, str]:
    return bearer(MARKET_MAKER, "MARKET_MAKER")


@pytest.fixture
def external_headers() -> Dict[str, str]:
    return bearer(EXTERNAL, "EXTERNAL")
