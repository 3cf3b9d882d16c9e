# tests/test_schedules_service.py
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from shiftwatch.models.booking import Booking
from shiftwatch.schemas.schedule import ScheduleCreate, ScheduleUpdate
from shiftwatch.services import schedules as schedule_service
from shiftwatch.services.errors import ScheduleNotFound, ValidationFailed
from shiftwatch.services.reservation import ReservationEngine


def _payload(**overrides) -> ScheduleCreate:
    fields = {
        "name": "Evening patrol",
        "cron_expr": "0 18 * * *",
        "timezone": "Africa/Johannesburg",
        "start_date": date(2025, 1, 1),
        "end_date": date(2025, 12, 31),
    }
    fields.update(overrides)
    return ScheduleCreate(**fields)


class DummySettings:
    DEFAULT_TIMEZONE = "Europe/London"
    DEFAULT_SHIFT_DURATION_MINUTES = 90


@pytest.mark.asyncio
async def test_create_schedule_applies_defaults(db, monkeypatch):
    monkeypatch.setattr(schedule_service, "get_settings", lambda: DummySettings())

    schedule = await schedule_service.create_schedule(
        db, _payload(timezone=None, cron_expr="  0   18 * *  * ")
    )

    assert schedule.id is not None
    assert schedule.duration_minutes == 90
    assert schedule.timezone == "Europe/London"
    assert schedule.cron_expr == "0 18 * * *"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"cron_expr": "0 18 * *"},
        {"cron_expr": "0 0 31 4 *"},
        {"timezone": "Nowhere/Special"},
        {"duration_minutes": 0},
        {"duration_minutes": -30},
        {"start_date": date(2025, 6, 1), "end_date": date(2025, 5, 1)},
    ],
)
async def test_create_schedule_rejects_invalid_definitions(db, overrides):
    with pytest.raises(ValidationFailed):
        await schedule_service.create_schedule(db, _payload(**overrides))

    assert await schedule_service.list_schedules(db) == []


@pytest.mark.asyncio
async def test_update_schedule_validates_merged_result(db):
    schedule = await schedule_service.create_schedule(db, _payload())

    with pytest.raises(ValidationFailed):
        await schedule_service.update_schedule(
            db, schedule.id, ScheduleUpdate(start_date=date(2026, 1, 1))
        )

    updated = await schedule_service.update_schedule(
        db, schedule.id, ScheduleUpdate(name="Late patrol", cron_expr="0 20 * * *")
    )
    assert updated.name == "Late patrol"
    assert updated.cron_expr == "0 20 * * *"
    assert updated.timezone == "Africa/Johannesburg"


@pytest.mark.asyncio
async def test_get_update_delete_unknown_schedule(db):
    with pytest.raises(ScheduleNotFound):
        await schedule_service.get_schedule(db, 77)
    with pytest.raises(ScheduleNotFound):
        await schedule_service.update_schedule(db, 77, ScheduleUpdate(name="x"))
    with pytest.raises(ScheduleNotFound):
        await schedule_service.delete_schedule(db, 77)


@pytest.mark.asyncio
async def test_delete_schedule_removes_its_bookings(db, add_user):
    await add_user(1)
    schedule = await schedule_service.create_schedule(db, _payload(timezone="UTC"))
    await ReservationEngine.for_session(db).reserve(
        1, schedule.id, datetime(2025, 1, 6, 18, tzinfo=timezone.utc)
    )

    await schedule_service.delete_schedule(db, schedule.id)

    remaining = await db.execute(select(func.count()).select_from(Booking))
    assert remaining.scalar_one() == 0
    assert await schedule_service.list_schedules(db) == []
