# shiftwatch/services/stores.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.models.booking import Booking
from shiftwatch.models.recurring_assignment import RecurringAssignment
from shiftwatch.models.schedule import Schedule
from shiftwatch.models.user import User
from shiftwatch.services.errors import (
    BookingConflict,
    BookingNotFound,
    InternalServiceError,
)

logger = logging.getLogger(__name__)


def is_unique_violation(exc: IntegrityError) -> bool:
    """
    Whether an IntegrityError comes from a UNIQUE constraint.

    SQLite reports "UNIQUE constraint failed", Postgres "duplicate key value
    violates unique constraint".
    """
    return "unique" in str(exc.orig if exc.orig is not None else exc).lower()


class _SessionStore:
    """
    Shared plumbing for store adapters bound to one AsyncSession.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        """
        Translate unexpected SQLAlchemy failures into InternalServiceError.

        The session is rolled back and the cause is logged with its traceback;
        callers only ever see the stable error kind.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Store failure while %s", action)
            raise InternalServiceError() from exc


class ScheduleStore(_SessionStore):
    async def get(self, schedule_id: int) -> Schedule | None:
        async with self._guard("loading schedule"):
            return await self.db.get(Schedule, schedule_id)

    async def list_all(self) -> list[Schedule]:
        async with self._guard("listing schedules"):
            result = await self.db.execute(select(Schedule).order_by(Schedule.id.asc()))
            return list(result.scalars().all())

    async def list_active(self, window_start: datetime, window_end: datetime) -> list[Schedule]:
        """
        Schedules whose active date range can overlap the window.

        Active dates are local to each schedule's timezone, so the comparison
        is padded by one day on both sides; the expander applies the exact
        bounds.
        """
        first_day = (window_start - timedelta(days=1)).date()
        last_day = (window_end + timedelta(days=1)).date()

        stmt = (
            select(Schedule)
            .where(
                or_(Schedule.start_date.is_(None), Schedule.start_date <= last_day),
                or_(Schedule.end_date.is_(None), Schedule.end_date >= first_day),
            )
            .order_by(Schedule.id.asc())
        )
        async with self._guard("listing active schedules"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def create(self, schedule: Schedule) -> Schedule:
        async with self._guard("creating schedule"):
            self.db.add(schedule)
            await self.db.commit()
            await self.db.refresh(schedule)
            return schedule

    async def update(self, schedule: Schedule, changes: dict[str, Any]) -> Schedule:
        async with self._guard("updating schedule"):
            for field, value in changes.items():
                setattr(schedule, field, value)
            await self.db.commit()
            await self.db.refresh(schedule)
            return schedule

    async def delete(self, schedule: Schedule) -> None:
        """
        Delete a schedule together with its bookings and recurring
        assignments in a single transaction.
        """
        async with self._guard("deleting schedule"):
            await self.db.execute(delete(Booking).where(Booking.schedule_id == schedule.id))
            await self.db.execute(
                delete(RecurringAssignment).where(
                    RecurringAssignment.schedule_id == schedule.id
                )
            )
            await self.db.delete(schedule)
            await self.db.commit()


class BookingStore(_SessionStore):
    async def create(self, booking: Booking) -> Booking:
        """
        Persist a new booking with a single INSERT + COMMIT.

        The UNIQUE(schedule_id, shift_start) constraint decides races: the
        first commit wins and every later attempt raises BookingConflict.
        """
        async with self._guard("creating booking"):
            self.db.add(booking)
            try:
                await self.db.commit()
            except IntegrityError as exc:
                await self.db.rollback()
                if is_unique_violation(exc):
                    raise BookingConflict() from exc
                raise
            await self.db.refresh(booking)
            return booking

    async def get(self, booking_id: int) -> Booking | None:
        async with self._guard("loading booking"):
            return await self.db.get(Booking, booking_id)

    async def reload(self, booking: Booking) -> Booking:
        async with self._guard("reloading booking"):
            await self.db.refresh(booking)
            return booking

    async def delete_slot(self, schedule_id: int, shift_start: datetime) -> int:
        """
        Delete the booking holding (schedule_id, shift_start).

        Returns the deleted booking id; raises BookingNotFound when no booking
        holds the slot.
        """
        stmt = (
            delete(Booking)
            .where(
                Booking.schedule_id == schedule_id,
                Booking.shift_start == shift_start,
            )
            .returning(Booking.id)
        )
        async with self._guard("deleting booking slot"):
            result = await self.db.execute(stmt)
            deleted_id = result.scalar_one_or_none()
            await self.db.commit()

        if deleted_id is None:
            raise BookingNotFound(
                f"No booking for schedule {schedule_id} at {shift_start.isoformat()}."
            )
        return deleted_id

    async def delete(self, booking_id: int) -> None:
        """Delete a booking by id; raises BookingNotFound if it is already gone."""
        stmt = delete(Booking).where(Booking.id == booking_id).returning(Booking.id)
        async with self._guard("deleting booking"):
            result = await self.db.execute(stmt)
            deleted_id = result.scalar_one_or_none()
            await self.db.commit()

        if deleted_id is None:
            raise BookingNotFound(f"Booking {booking_id} not found.")

    async def mark_checked_in(self, booking_id: int, at: datetime) -> None:
        """
        Set checked_in_at only if it is still unset.

        A single conditional UPDATE, so the first check-in timestamp survives
        concurrent or repeated calls.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.checked_in_at.is_(None))
            .values(checked_in_at=at)
        )
        async with self._guard("marking check-in"):
            await self.db.execute(stmt)
            await self.db.commit()

    async def clear_check_in(self, booking_id: int) -> None:
        stmt = update(Booking).where(Booking.id == booking_id).values(checked_in_at=None)
        async with self._guard("clearing check-in"):
            await self.db.execute(stmt)
            await self.db.commit()

    async def list_starting_between(self, start: datetime, end: datetime) -> list[Booking]:
        """Bookings with start <= shift_start < end, for exclusion checks."""
        stmt = (
            select(Booking)
            .where(Booking.shift_start >= start, Booking.shift_start < end)
            .order_by(Booking.shift_start.asc(), Booking.schedule_id.asc())
        )
        async with self._guard("listing bookings in window"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def list_for_user(self, user_id: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.shift_start.desc())
        )
        async with self._guard("listing user bookings"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())


class UserStore(_SessionStore):
    async def get(self, user_id: int) -> User | None:
        async with self._guard("loading user"):
            return await self.db.get(User, user_id)

    async def get_by_phone(self, phone: str) -> User | None:
        async with self._guard("looking up user by phone"):
            result = await self.db.execute(select(User).where(User.phone == phone))
            return result.scalar_one_or_none()

    async def exists(self, user_id: int) -> bool:
        async with self._guard("checking user existence"):
            result = await self.db.execute(select(User.id).where(User.id == user_id))
            return result.scalar_one_or_none() is not None
