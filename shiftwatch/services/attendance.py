# shiftwatch/services/attendance.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.db.types import utcnow
from shiftwatch.models.booking import Booking
from shiftwatch.services.errors import BookingNotFound, ForbiddenUpdate
from shiftwatch.services.stores import BookingStore

logger = logging.getLogger(__name__)


class AttendanceTracker:
    """
    Records whether a booked volunteer actually turned up.

    State machine
    -------------
    - attended=True  and not checked in => checked_in_at = now
    - attended=True  and checked in     => unchanged (first check-in wins)
    - attended=False                    => checked_in_at cleared

    Only the booking owner, or a caller whose administrative capability is
    passed in as `is_admin`, may change it.
    """

    def __init__(self, bookings: BookingStore, clock: Callable[[], datetime] = utcnow) -> None:
        self.bookings = bookings
        self.clock = clock

    @classmethod
    def for_session(cls, db: AsyncSession) -> "AttendanceTracker":
        return cls(BookingStore(db))

    async def set_attendance(
        self,
        booking_id: int,
        caller_user_id: int,
        attended: bool,
        is_admin: bool = False,
    ) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found.")

        if booking.user_id != caller_user_id and not is_admin:
            logger.warning(
                "Attendance update on booking %s refused for user %s",
                booking_id,
                caller_user_id,
            )
            raise ForbiddenUpdate("Only the booking owner or an admin may update attendance.")

        if attended:
            await self.bookings.mark_checked_in(booking_id, self.clock())
        else:
            await self.bookings.clear_check_in(booking_id)

        booking = await self.bookings.reload(booking)
        logger.info(
            "Attendance for booking %s set to %s by user %s (checked_in_at=%s)",
            booking_id,
            attended,
            caller_user_id,
            booking.checked_in_at,
        )
        return booking
