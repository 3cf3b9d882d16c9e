# shiftwatch/services/reservation.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.core.config import get_settings
from shiftwatch.db.types import utcnow
from shiftwatch.models.booking import Booking
from shiftwatch.models.schedule import Schedule
from shiftwatch.services.errors import (
    BookingCannotBeCancelled,
    BookingConflict,
    BookingNotFound,
    ForbiddenUpdate,
    ScheduleNotFound,
    ShiftTimeInvalid,
    UserNotFound,
    ValidationFailed,
)
from shiftwatch.services.recurrence import as_utc, is_occurrence, shift_duration
from shiftwatch.services.stores import BookingStore, ScheduleStore, UserStore

logger = logging.getLogger(__name__)


class ReservationEngine:
    """
    Turns schedule occurrences into bookings.

    Rules
    -----
    1) The schedule must exist                      => else ScheduleNotFound
    2) The start must be one of its occurrences     => else ShiftTimeInvalid
    3) The booking is created by a single INSERT; the unique
       (schedule_id, shift_start) constraint makes the first writer win
       and every other writer get BookingConflict.

    Admin assignment reuses the same steps, additionally checking that the
    target user exists, and skips any ownership rule.
    """

    def __init__(
        self,
        schedules: ScheduleStore,
        bookings: BookingStore,
        users: UserStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.schedules = schedules
        self.bookings = bookings
        self.users = users
        self.clock = clock

    @classmethod
    def for_session(cls, db: AsyncSession) -> "ReservationEngine":
        return cls(ScheduleStore(db), BookingStore(db), UserStore(db))

    async def reserve(
        self,
        user_id: int,
        schedule_id: int,
        start: datetime,
        buddy_name: str | None = None,
        buddy_phone: str | None = None,
    ) -> Booking:
        """
        Reserve the occurrence of `schedule_id` starting at `start` for
        `user_id`.

        When `buddy_phone` belongs to a registered user, that user is linked
        as buddy and their registered name is preferred over `buddy_name`.
        """
        schedule, start_utc = await self._validated_slot(schedule_id, start)

        buddy_user_id = None
        if buddy_phone:
            buddy = await self.users.get_by_phone(buddy_phone)
            if buddy is not None:
                buddy_user_id = buddy.id
                buddy_name = buddy.name or buddy_name

        booking = await self._create(
            Booking(
                user_id=user_id,
                schedule_id=schedule.id,
                shift_start=start_utc,
                shift_end=start_utc + shift_duration(schedule),
                buddy_user_id=buddy_user_id,
                buddy_name=buddy_name,
                buddy_phone=buddy_phone,
            )
        )
        logger.info(
            "Booking %s created: user=%s schedule=%s start=%s",
            booking.id,
            user_id,
            schedule.id,
            start_utc.isoformat(),
        )
        return booking

    async def release(self, schedule_id: int, start: datetime) -> None:
        """Delete the booking holding the slot; BookingNotFound if there is none."""
        start_utc = as_utc(start)
        booking_id = await self.bookings.delete_slot(schedule_id, start_utc)
        logger.info(
            "Booking %s released: schedule=%s start=%s",
            booking_id,
            schedule_id,
            start_utc.isoformat(),
        )

    async def assign(
        self,
        target_user_id: int,
        schedule_id: int,
        start: datetime,
        buddy_name: str | None = None,
    ) -> Booking:
        """
        Administrative assignment of `target_user_id` to a slot.
        """
        schedule, start_utc = await self._validated_slot(schedule_id, start)

        if not await self.users.exists(target_user_id):
            logger.warning("Assignment rejected: user %s not found", target_user_id)
            raise UserNotFound(f"User {target_user_id} not found.")

        booking = await self._create(
            Booking(
                user_id=target_user_id,
                schedule_id=schedule.id,
                shift_start=start_utc,
                shift_end=start_utc + shift_duration(schedule),
                buddy_name=buddy_name,
            )
        )
        logger.info(
            "Booking %s assigned by admin: user=%s schedule=%s start=%s",
            booking.id,
            target_user_id,
            schedule.id,
            start_utc.isoformat(),
        )
        return booking

    async def unassign(self, schedule_id: int, start: datetime) -> None:
        """
        Administrative release of a slot, whoever holds it.
        """
        if await self.schedules.get(schedule_id) is None:
            logger.warning("Unassignment rejected: schedule %s not found", schedule_id)
            raise ScheduleNotFound(f"Schedule {schedule_id} not found.")
        await self.release(schedule_id, start)

    async def cancel(self, booking_id: int, caller_user_id: int) -> None:
        """
        Self-service cancellation by the booking owner.

        Refused with BookingCannotBeCancelled once the shift starts within
        CANCEL_CUTOFF_HOURS (or has already started).
        """
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found.")

        if booking.user_id != caller_user_id:
            logger.warning(
                "Cancellation of booking %s refused for user %s (owner %s)",
                booking_id,
                caller_user_id,
                booking.user_id,
            )
            raise ForbiddenUpdate("You can only cancel your own bookings.")

        cutoff_hours = get_settings().CANCEL_CUTOFF_HOURS
        if as_utc(booking.shift_start) - self.clock() < timedelta(hours=cutoff_hours):
            logger.warning("Cancellation of booking %s refused: too close to shift", booking_id)
            raise BookingCannotBeCancelled(
                f"Bookings cannot be cancelled within {cutoff_hours} hours of the shift start."
            )

        await self.bookings.delete(booking_id)
        logger.info("Booking %s cancelled by user %s", booking_id, caller_user_id)

    async def bookings_for_user(self, user_id: int) -> list[Booking]:
        """All bookings of a user, most recent shift first."""
        if not await self.users.exists(user_id):
            raise UserNotFound(f"User {user_id} not found.")
        return await self.bookings.list_for_user(user_id)

    async def _validated_slot(self, schedule_id: int, start: datetime) -> tuple[Schedule, datetime]:
        schedule = await self.schedules.get(schedule_id)
        if schedule is None:
            logger.warning("Reservation rejected: schedule %s not found", schedule_id)
            raise ScheduleNotFound(f"Schedule {schedule_id} not found.")

        start_utc = as_utc(start)
        try:
            valid = is_occurrence(schedule, start_utc)
        except ValidationFailed as exc:
            logger.warning("Schedule %s cannot be expanded: %s", schedule_id, exc.message)
            valid = False

        if not valid:
            logger.warning(
                "Reservation rejected: %s is not an occurrence of schedule %s",
                start_utc.isoformat(),
                schedule_id,
            )
            raise ShiftTimeInvalid(
                f"{start_utc.isoformat()} is not a valid shift start for schedule {schedule_id}."
            )
        return schedule, start_utc

    async def _create(self, booking: Booking) -> Booking:
        try:
            return await self.bookings.create(booking)
        except BookingConflict:
            logger.warning(
                "Booking conflict: schedule=%s start=%s already taken",
                booking.schedule_id,
                booking.shift_start.isoformat(),
            )
            raise
