# tests/test_reservation.py
import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from shiftwatch.models.booking import Booking
from shiftwatch.services.availability import AvailabilityResolver
from shiftwatch.services.errors import (
    BookingCannotBeCancelled,
    BookingConflict,
    BookingNotFound,
    ForbiddenUpdate,
    ScheduleNotFound,
    ShiftTimeInvalid,
    UserNotFound,
)
from shiftwatch.services.reservation import ReservationEngine
from shiftwatch.services.stores import BookingStore, ScheduleStore, UserStore


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


async def _booking_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(Booking))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_second_reserve_of_same_slot_conflicts(db, add_user, add_schedule):
    await add_user(1)
    await add_user(2)
    schedule = await add_schedule()
    engine = ReservationEngine.for_session(db)

    booking = await engine.reserve(1, schedule.id, _utc(2025, 1, 6, 18))

    assert booking.id is not None
    assert booking.checked_in_at is None
    assert booking.shift_start == _utc(2025, 1, 6, 18)
    assert booking.shift_end == _utc(2025, 1, 6, 19)
    assert booking.created_at is not None

    with pytest.raises(BookingConflict):
        await engine.reserve(2, schedule.id, _utc(2025, 1, 6, 18))

    assert await _booking_count(db) == 1


@pytest.mark.asyncio
async def test_concurrent_reserves_have_exactly_one_winner(session_factory, db, add_user, add_schedule):
    """
    N callers race for the same slot from their own sessions: one booking is
    created and every other caller gets BookingConflict.
    """
    racers = 8
    for user_id in range(1, racers + 1):
        await add_user(user_id)
    schedule = await add_schedule()
    start = _utc(2025, 1, 6, 18)

    async def _attempt(user_id: int):
        async with session_factory() as session:
            engine = ReservationEngine.for_session(session)
            try:
                return await engine.reserve(user_id, schedule.id, start)
            except BookingConflict as exc:
                return exc

    results = await asyncio.gather(*(_attempt(u) for u in range(1, racers + 1)))

    winners = [r for r in results if isinstance(r, Booking)]
    losers = [r for r in results if isinstance(r, BookingConflict)]
    assert len(winners) == 1
    assert len(losers) == racers - 1
    assert await _booking_count(db) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "start",
    [
        _utc(2025, 1, 6, 18, 30),  # not on the rule's minute
        _utc(2025, 1, 6, 17),  # wrong hour
        _utc(2026, 1, 6, 18),  # after the active window
        _utc(2025, 1, 6, 18, 0, 30),  # not on a whole minute
    ],
)
async def test_reserve_rejects_times_the_schedule_never_produces(db, add_user, add_schedule, start):
    await add_user(1)
    schedule = await add_schedule()

    with pytest.raises(ShiftTimeInvalid):
        await ReservationEngine.for_session(db).reserve(1, schedule.id, start)

    assert await _booking_count(db) == 0


@pytest.mark.asyncio
async def test_reserve_unknown_schedule(db, add_user):
    await add_user(1)

    with pytest.raises(ScheduleNotFound):
        await ReservationEngine.for_session(db).reserve(1, 999, _utc(2025, 1, 6, 18))


@pytest.mark.asyncio
async def test_reserve_accepts_local_offsets(db, add_user, add_schedule):
    """
    A start given with a +02:00 offset is the same instant as 18:00 UTC.
    """
    await add_user(1)
    schedule = await add_schedule()
    start = datetime(2025, 1, 6, 20, tzinfo=timezone(timedelta(hours=2)))

    booking = await ReservationEngine.for_session(db).reserve(1, schedule.id, start)

    assert booking.shift_start == _utc(2025, 1, 6, 18)


@pytest.mark.asyncio
async def test_reserve_links_registered_buddy_by_phone(db, add_user, add_schedule):
    await add_user(1)
    buddy = await add_user(2, phone="+27821112222", name="Registered Name")
    schedule = await add_schedule()
    engine = ReservationEngine.for_session(db)

    linked = await engine.reserve(
        1, schedule.id, _utc(2025, 1, 6, 18), buddy_name="Typed Name", buddy_phone="+27821112222"
    )
    unlinked = await engine.reserve(
        1, schedule.id, _utc(2025, 1, 7, 18), buddy_name="Stranger", buddy_phone="+27829999999"
    )

    assert linked.buddy_user_id == buddy.id
    assert linked.buddy_name == "Registered Name"
    assert unlinked.buddy_user_id is None
    assert unlinked.buddy_name == "Stranger"
    assert unlinked.buddy_phone == "+27829999999"


@pytest.mark.asyncio
async def test_release_deletes_the_slot_booking(db, add_user, add_schedule):
    await add_user(1)
    schedule = await add_schedule()
    engine = ReservationEngine.for_session(db)
    await engine.reserve(1, schedule.id, _utc(2025, 1, 6, 18))

    await engine.release(schedule.id, _utc(2025, 1, 6, 18))

    assert await _booking_count(db) == 0
    with pytest.raises(BookingNotFound):
        await engine.release(schedule.id, _utc(2025, 1, 6, 18))


@pytest.mark.asyncio
async def test_admin_assign_then_unassign_returns_slot_to_availability(db, add_user, add_schedule):
    await add_user(42)
    schedule = await add_schedule()
    engine = ReservationEngine.for_session(db)
    resolver = AvailabilityResolver.for_session(db)
    start = _utc(2025, 1, 8, 18)
    window = (_utc(2025, 1, 6), _utc(2025, 1, 10))

    booking = await engine.assign(42, schedule.id, start)
    assert booking.user_id == 42
    assert (schedule.id, start) not in [s.occurrence.key for s in await resolver.available_slots(*window)]

    await engine.unassign(schedule.id, start)
    assert (schedule.id, start) in [s.occurrence.key for s in await resolver.available_slots(*window)]


@pytest.mark.asyncio
async def test_assign_validates_user_and_slot(db, add_user, add_schedule):
    await add_user(1)
    schedule = await add_schedule()
    engine = ReservationEngine.for_session(db)

    with pytest.raises(UserNotFound):
        await engine.assign(404, schedule.id, _utc(2025, 1, 6, 18))
    with pytest.raises(ShiftTimeInvalid):
        await engine.assign(1, schedule.id, _utc(2025, 1, 6, 9))

    await engine.reserve(1, schedule.id, _utc(2025, 1, 6, 18))
    with pytest.raises(BookingConflict):
        await engine.assign(1, schedule.id, _utc(2025, 1, 6, 18))


@pytest.mark.asyncio
async def test_unassign_unknown_schedule_or_empty_slot(db, add_schedule):
    schedule = await add_schedule()
    engine = ReservationEngine.for_session(db)

    with pytest.raises(ScheduleNotFound):
        await engine.unassign(999, _utc(2025, 1, 6, 18))
    with pytest.raises(BookingNotFound):
        await engine.unassign(schedule.id, _utc(2025, 1, 6, 18))


@pytest.mark.asyncio
async def test_shift_end_is_frozen_when_schedule_duration_changes(db, add_user, add_schedule):
    await add_user(1)
    schedule = await add_schedule(duration_minutes=60)
    booking = await ReservationEngine.for_session(db).reserve(1, schedule.id, _utc(2025, 1, 6, 18))

    await ScheduleStore(db).update(schedule, {"duration_minutes": 240})
    reloaded = await BookingStore(db).reload(booking)

    assert reloaded.shift_end == _utc(2025, 1, 6, 19)


def _engine_at(db, now: datetime) -> ReservationEngine:
    return ReservationEngine(ScheduleStore(db), BookingStore(db), UserStore(db), clock=lambda: now)


@pytest.mark.asyncio
async def test_cancel_rules(db, add_user, add_schedule):
    await add_user(1)
    await add_user(2)
    schedule = await add_schedule()
    start = _utc(2025, 1, 6, 18)
    booking = await _engine_at(db, _utc(2025, 1, 1)).reserve(1, schedule.id, start)

    with pytest.raises(ForbiddenUpdate):
        await _engine_at(db, _utc(2025, 1, 1)).cancel(booking.id, 2)
    with pytest.raises(BookingCannotBeCancelled):
        await _engine_at(db, start - timedelta(hours=1)).cancel(booking.id, 1)
    with pytest.raises(BookingCannotBeCancelled):
        await _engine_at(db, start + timedelta(minutes=5)).cancel(booking.id, 1)

    await _engine_at(db, start - timedelta(hours=3)).cancel(booking.id, 1)

    assert await _booking_count(db) == 0
    with pytest.raises(BookingNotFound):
        await _engine_at(db, _utc(2025, 1, 1)).cancel(booking.id, 1)


@pytest.mark.asyncio
async def test_bookings_for_user_latest_first(db, add_user, add_schedule):
    await add_user(1)
    schedule = await add_schedule(start_date=date(2025, 1, 1))
    engine = ReservationEngine.for_session(db)
    await engine.reserve(1, schedule.id, _utc(2025, 1, 6, 18))
    await engine.reserve(1, schedule.id, _utc(2025, 1, 9, 18))

    bookings = await engine.bookings_for_user(1)

    assert [b.shift_start for b in bookings] == [_utc(2025, 1, 9, 18), _utc(2025, 1, 6, 18)]
    with pytest.raises(UserNotFound):
        await engine.bookings_for_user(404)
