# tests/conftest.py
# Shared fixtures: a fresh SQLite database per test and services bound to it.

import pytest
import pytest_asyncio

from sessionshare.config import Settings
from sessionshare.db.base import build_engine, build_session_factory, create_schema
from sessionshare.repositories.event_log_repository import EventLogRepository
from sessionshare.repositories.share_repository import ShareRepository
from sessionshare.repositories.snapshot_repository import SnapshotRepository
from sessionshare.services.share_service import ShareService


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DB_URL=f"sqlite+aiosqlite:///{tmp_path / 'shares.db'}",
        LOGS_PATH=str(tmp_path / "logs"),
        PUBLIC_BASE_URL="https://share.example.test",
        RATE_LIMIT_API=1000,
        RATE_LIMIT_GENERAL=1000,
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = build_engine(settings)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def share_repository(session_factory) -> ShareRepository:
    return ShareRepository(session_factory)


@pytest.fixture
def event_log(session_factory) -> EventLogRepository:
    return EventLogRepository(session_factory)


@pytest.fixture
def snapshots(session_factory) -> SnapshotRepository:
    return SnapshotRepository(session_factory)


@pytest.fixture
def service(session_factory, settings) -> ShareService:
    return ShareService.from_session_factory(session_factory, settings)
