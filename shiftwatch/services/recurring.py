# shiftwatch/services/recurring.py
from __future__ import annotations

import logging
import re
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.models.booking import Booking
from shiftwatch.models.recurring_assignment import RecurringAssignment
from shiftwatch.schemas.recurring_assignment import (
    MaterializationSummary,
    RecurringAssignmentCreate,
)
from shiftwatch.services.availability import AvailabilityResolver, ResolvedSlot
from shiftwatch.services.errors import (
    BookingConflict,
    InternalServiceError,
    RecurringAssignmentNotFound,
    ScheduleNotFound,
    UserNotFound,
    ValidationFailed,
)
from shiftwatch.services.recurrence import load_timezone
from shiftwatch.services.stores import BookingStore, ScheduleStore, UserStore

logger = logging.getLogger(__name__)

TIME_SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d-([01]\d|2[0-3]):[0-5]\d$")

AssignmentKey = tuple[int, int, str]


def local_slot_key(slot: ResolvedSlot) -> AssignmentKey:
    """
    (schedule_id, local weekday with 0 = Sunday, local "HH:MM-HH:MM") of a slot,
    evaluated in the schedule's timezone.
    """
    tz = load_timezone(slot.timezone)
    start = slot.occurrence.start.astimezone(tz)
    end = slot.occurrence.end.astimezone(tz)
    return (
        slot.occurrence.schedule_id,
        start.isoweekday() % 7,
        f"{start:%H:%M}-{end:%H:%M}",
    )


async def create_recurring_assignment(
    db: AsyncSession,
    payload: RecurringAssignmentCreate,
) -> RecurringAssignment:
    """
    Register a standing weekly assignment.

    A previously deactivated identical assignment is reactivated instead of
    inserting a duplicate row.
    """
    if not TIME_SLOT_PATTERN.match(payload.time_slot):
        raise ValidationFailed("time_slot must look like HH:MM-HH:MM.")
    if not await UserStore(db).exists(payload.user_id):
        raise UserNotFound(f"User {payload.user_id} not found.")
    if await ScheduleStore(db).get(payload.schedule_id) is None:
        raise ScheduleNotFound(f"Schedule {payload.schedule_id} not found.")

    try:
        result = await db.execute(
            select(RecurringAssignment).where(
                RecurringAssignment.user_id == payload.user_id,
                RecurringAssignment.schedule_id == payload.schedule_id,
                RecurringAssignment.day_of_week == payload.day_of_week,
                RecurringAssignment.time_slot == payload.time_slot,
            )
        )
        assignment = result.scalar_one_or_none()

        if assignment is not None and assignment.is_active:
            raise ValidationFailed("An identical recurring assignment already exists.")

        if assignment is None:
            assignment = RecurringAssignment(
                user_id=payload.user_id,
                schedule_id=payload.schedule_id,
                day_of_week=payload.day_of_week,
                time_slot=payload.time_slot,
            )
            db.add(assignment)

        assignment.buddy_name = payload.buddy_name
        assignment.description = payload.description
        assignment.is_active = True

        await db.commit()
        await db.refresh(assignment)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to save recurring assignment")
        raise InternalServiceError() from exc

    logger.info(
        "Recurring assignment %s active: user=%s schedule=%s day=%s slot=%s",
        assignment.id,
        assignment.user_id,
        assignment.schedule_id,
        assignment.day_of_week,
        assignment.time_slot,
    )
    return assignment


async def list_recurring_assignments(
    db: AsyncSession,
    user_id: int | None = None,
) -> list[RecurringAssignment]:
    """Active assignments, lowest id first, optionally for one user."""
    stmt = select(RecurringAssignment).where(RecurringAssignment.is_active.is_(True))
    if user_id is not None:
        stmt = stmt.where(RecurringAssignment.user_id == user_id)

    try:
        result = await db.execute(stmt.order_by(RecurringAssignment.id.asc()))
    except SQLAlchemyError as exc:
        logger.exception("Failed to list recurring assignments")
        raise InternalServiceError() from exc
    return list(result.scalars().all())


async def deactivate_recurring_assignment(db: AsyncSession, assignment_id: int) -> None:
    """Soft delete; unknown or already inactive ids are reported as not found."""
    stmt = (
        update(RecurringAssignment)
        .where(
            RecurringAssignment.id == assignment_id,
            RecurringAssignment.is_active.is_(True),
        )
        .values(is_active=False)
        .returning(RecurringAssignment.id)
    )
    try:
        result = await db.execute(stmt)
        updated_id = result.scalar_one_or_none()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to deactivate recurring assignment %s", assignment_id)
        raise InternalServiceError() from exc

    if updated_id is None:
        raise RecurringAssignmentNotFound(f"Recurring assignment {assignment_id} not found.")
    logger.info("Recurring assignment %s deactivated", assignment_id)


async def materialize_recurring_assignments(
    db: AsyncSession,
    window_start: datetime,
    window_end: datetime,
) -> MaterializationSummary:
    """
    Turn active recurring assignments into bookings for a window.

    Steps
    -----
    1) Resolve the unbooked slots of the window.
    2) For each slot, look up an active assignment with the same schedule,
       local weekday and local "HH:MM-HH:MM" (lowest id wins).
    3) Insert the booking through the same atomic insert used for
       reservations; a BookingConflict means someone else took the slot
       meanwhile and is counted as skipped.
    """
    slots = await AvailabilityResolver.for_session(db).available_slots(window_start, window_end)
    assignments = await list_recurring_assignments(db)

    by_key: dict[AssignmentKey, RecurringAssignment] = {}
    for assignment in assignments:
        by_key.setdefault(
            (assignment.schedule_id, assignment.day_of_week, assignment.time_slot),
            assignment,
        )

    bookings = BookingStore(db)
    created: list[int] = []
    skipped = 0

    for slot in slots:
        assignment = by_key.get(local_slot_key(slot)) if by_key else None
        if assignment is None:
            continue

        try:
            booking = await bookings.create(
                Booking(
                    user_id=assignment.user_id,
                    schedule_id=slot.occurrence.schedule_id,
                    shift_start=slot.occurrence.start,
                    shift_end=slot.occurrence.end,
                    buddy_name=assignment.buddy_name,
                )
            )
        except BookingConflict:
            skipped += 1
            continue
        created.append(booking.id)

    summary = MaterializationSummary(
        examined=len(slots),
        materialized=len(created),
        skipped=skipped,
        bookings=created,
    )
    logger.info(
        "Materialized recurring assignments: examined=%s materialized=%s skipped=%s",
        summary.examined,
        summary.materialized,
        summary.skipped,
    )
    return summary
