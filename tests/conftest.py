# tests/conftest.py
from datetime import date

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

import shiftwatch.main as main_module
from shiftwatch.db.session import build_sync_db_url, get_db, reset_schema_sync
from shiftwatch.main import create_app
from shiftwatch.models.schedule import Schedule
from shiftwatch.models.user import User


@pytest.fixture
def db_url(tmp_path) -> str:
    """
    File-backed SQLite database, fresh for every test.
    """
    return f"sqlite+aiosqlite:///{tmp_path / 'shiftwatch_test.db'}"


@pytest.fixture
def session_factory(db_url):
    """
    Session factory bound to a freshly created schema.
    """
    reset_schema_sync(db_url)
    engine = create_async_engine(db_url, echo=False, poolclass=NullPool)
    factory = async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )
    yield factory
    engine.sync_engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def sync_session(db_url, session_factory):
    """
    Synchronous session on the same database, for seeding rows from plain
    (non-async) API tests.
    """
    engine = create_sync_engine(build_sync_db_url(db_url))
    with Session(engine, expire_on_commit=False) as session:
        yield session
    engine.dispose()


@pytest.fixture
def client(session_factory, monkeypatch) -> TestClient:
    """
    TestClient on a fresh app whose `get_db` uses the per-test database.
    """

    async def _skip_schema_creation() -> None:
        return None

    monkeypatch.setattr(main_module, "init_db_for_startup", _skip_schema_creation)

    app = create_app()

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def schedule_factory():
    """
    Build transient Schedule objects (not persisted) for pure expansion tests.
    """

    def _build(**overrides) -> Schedule:
        fields = {
            "id": 1,
            "name": "Evening patrol",
            "cron_expr": "0 18 * * *",
            "duration_minutes": 60,
            "timezone": "UTC",
            "start_date": date(2025, 1, 1),
            "end_date": date(2025, 12, 31),
        }
        fields.update(overrides)
        return Schedule(**fields)

    return _build


@pytest.fixture
def add_user(db):
    async def _add(user_id: int, phone: str | None = None, name: str | None = None, role: str = "owl") -> User:
        user = User(id=user_id, phone=phone or f"+2782000{user_id:04d}", name=name, role=role)
        db.add(user)
        await db.commit()
        return user

    return _add


@pytest.fixture
def add_schedule(db, schedule_factory):
    async def _add(**overrides) -> Schedule:
        overrides.setdefault("id", None)
        schedule = schedule_factory(**overrides)
        db.add(schedule)
        await db.commit()
        await db.refresh(schedule)
        return schedule

    return _add
