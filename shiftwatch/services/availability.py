# shiftwatch/services/availability.py
from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import islice
from typing import Iterable, Iterator, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.core.config import get_settings
from shiftwatch.models.booking import Booking
from shiftwatch.models.schedule import Schedule
from shiftwatch.services.errors import ValidationFailed
from shiftwatch.services.recurrence import (
    Occurrence,
    as_utc,
    expand,
    resolve_limit,
    schedule_timezone,
)
from shiftwatch.services.stores import BookingStore, ScheduleStore

logger = logging.getLogger(__name__)

SlotKey = tuple[int, datetime]


@dataclass(frozen=True)
class ResolvedSlot:
    """
    An occurrence together with the schedule data needed to present it, and
    the booking holding it (only set in the roster view).
    """

    occurrence: Occurrence
    schedule_name: str
    timezone: str
    booking: Booking | None = None

    @property
    def is_booked(self) -> bool:
        return self.booking is not None


def validate_window(window_start: datetime, window_end: datetime) -> tuple[datetime, datetime]:
    """
    Normalize a query window to UTC and reject malformed ones.

    Rules
    -----
    - end must be strictly after start
    - the window may not exceed MAX_QUERY_WINDOW_DAYS
    """
    start = as_utc(window_start)
    end = as_utc(window_end)

    if end <= start:
        raise ValidationFailed("Window end must be after window start.")

    max_days = get_settings().MAX_QUERY_WINDOW_DAYS
    if end - start > timedelta(days=max_days):
        raise ValidationFailed(f"Window may not be longer than {max_days} days.")

    return start, end


def booked_slot_keys(bookings: Iterable[Booking]) -> dict[SlotKey, Booking]:
    return {(b.schedule_id, as_utc(b.shift_start)): b for b in bookings}


def _label(
    occurrences: Iterable[Occurrence],
    schedule_name: str,
    tz_name: str,
) -> Iterator[ResolvedSlot]:
    for occurrence in occurrences:
        yield ResolvedSlot(occurrence=occurrence, schedule_name=schedule_name, timezone=tz_name)


def merge_available(
    schedules: Iterable[Schedule],
    booked_keys: Mapping[SlotKey, Booking],
    window_start: datetime,
    window_end: datetime,
    limit: int | None = None,
    include_booked: bool = False,
) -> list[ResolvedSlot]:
    """
    Merge the occurrences of several schedules into one time-ordered list.

    Steps
    -----
    1) Expand every schedule over the window.
    2) Merge the per-schedule sequences by (start, schedule_id).
    3) Drop occurrences present in `booked_keys`, unless `include_booked`.
    4) Apply `limit` to the merged result.

    Each schedule is expanded with its own cap raised by the number of its
    booked slots, so exclusions never starve the global limit.
    """
    cap = resolve_limit(limit)

    booked_per_schedule: dict[int, int] = {}
    for schedule_id, _ in booked_keys:
        booked_per_schedule[schedule_id] = booked_per_schedule.get(schedule_id, 0) + 1

    streams: list[Iterator[ResolvedSlot]] = []
    for schedule in schedules:
        try:
            expansion = expand(
                schedule,
                window_start,
                window_end,
                limit=cap + booked_per_schedule.get(schedule.id, 0),
            )
        except ValidationFailed as exc:
            logger.warning("Skipping schedule %s: %s", schedule.id, exc.message)
            continue

        streams.append(_label(expansion, schedule.name, str(schedule_timezone(schedule))))

    merged = heapq.merge(
        *streams,
        key=lambda slot: (slot.occurrence.start, slot.occurrence.schedule_id),
    )

    def _visible() -> Iterator[ResolvedSlot]:
        for slot in merged:
            booking = booked_keys.get(slot.occurrence.key)
            if booking is None:
                yield slot
            elif include_booked:
                yield ResolvedSlot(
                    occurrence=slot.occurrence,
                    schedule_name=slot.schedule_name,
                    timezone=slot.timezone,
                    booking=booking,
                )

    return list(islice(_visible(), cap))


class AvailabilityResolver:
    """
    Computes bookable slots across all active schedules.

    Reads the active schedules and one windowed batch of bookings, then hands
    both to `merge_available`. No per-occurrence store queries are made.
    """

    def __init__(self, schedules: ScheduleStore, bookings: BookingStore) -> None:
        self.schedules = schedules
        self.bookings = bookings

    @classmethod
    def for_session(cls, db: AsyncSession) -> "AvailabilityResolver":
        return cls(ScheduleStore(db), BookingStore(db))

    async def available_slots(
        self,
        window_start: datetime,
        window_end: datetime,
        limit: int | None = None,
    ) -> list[ResolvedSlot]:
        """Unbooked occurrences in the window, ascending by start."""
        return await self._resolve(window_start, window_end, limit, include_booked=False)

    async def all_slots(
        self,
        window_start: datetime,
        window_end: datetime,
        limit: int | None = None,
    ) -> list[ResolvedSlot]:
        """Every occurrence in the window, with the booking holding it if any."""
        return await self._resolve(window_start, window_end, limit, include_booked=True)

    async def _resolve(
        self,
        window_start: datetime,
        window_end: datetime,
        limit: int | None,
        include_booked: bool,
    ) -> list[ResolvedSlot]:
        start, end = validate_window(window_start, window_end)
        resolve_limit(limit)

        schedules = await self.schedules.list_active(start, end)
        # A window ending on local midnight includes that whole day.
        bookings = await self.bookings.list_starting_between(start, end + timedelta(days=1))

        return merge_available(
            schedules,
            booked_slot_keys(bookings),
            start,
            end,
            limit=limit,
            include_booked=include_booked,
        )
