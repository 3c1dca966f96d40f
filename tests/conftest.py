from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cardvault.bootstrap import Services, build_services
from cardvault.config import Settings
from cardvault.db.database import get_session
from cardvault.db.store import SqlImportStore
from cardvault.main import app
from cardvault.models.db import Base


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> SqlImportStore:
    return SqlImportStore(session_factory, max_batch_operations=500)


@pytest.fixture
def sample_csv() -> str:
    """ManaBox-style export with a header row."""
    return (
        "Name,Set code,Set name,Collector number,Quantity,Rarity,Condition,Language\n"
        "Lightning Bolt,M21,Core Set 2021,161,4,common,near_mint,en\n"
        "Black Lotus,LEA,Limited Edition Alpha,232,1,rare,played,en\n"
        '"Delver of Secrets // Insectile Aberration",ISD,Innistrad,51,2,common,near_mint,fr\n'
    )


@pytest.fixture
async def services(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[Services, None]:
    """Production wiring over the test database; provider calls are mocked with respx."""
    services = build_services(Settings(translations_path=None), session_factory)
    yield services
    await services.aclose()


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession], services: Services
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; the app lifespan does not run, so services are set directly."""

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
