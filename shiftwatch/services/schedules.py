# shiftwatch/services/schedules.py
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.core.config import get_settings
from shiftwatch.models.schedule import Schedule
from shiftwatch.schemas.schedule import ScheduleCreate, ScheduleUpdate
from shiftwatch.services.errors import ScheduleNotFound, ValidationFailed
from shiftwatch.services.recurrence import load_timezone, parse_rule
from shiftwatch.services.stores import ScheduleStore

logger = logging.getLogger(__name__)


def validate_schedule_fields(
    cron_expr: str,
    timezone_name: str | None,
    duration_minutes: int,
    start_date: date | None,
    end_date: date | None,
) -> None:
    """
    Check a schedule definition before anything is written.

    Rules
    -----
    - cron_expr parses and can match at least one calendar day
    - timezone (when given) is a known IANA zone
    - duration_minutes > 0
    - start_date <= end_date when both are given
    """
    parse_rule(cron_expr)
    if timezone_name:
        load_timezone(timezone_name)
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationFailed("duration_minutes must be a positive number of minutes.")
    if start_date is not None and end_date is not None and start_date > end_date:
        raise ValidationFailed("start_date must be on or before end_date.")


async def get_schedule(db: AsyncSession, schedule_id: int) -> Schedule:
    schedule = await ScheduleStore(db).get(schedule_id)
    if schedule is None:
        raise ScheduleNotFound(f"Schedule {schedule_id} not found.")
    return schedule


async def list_schedules(db: AsyncSession) -> list[Schedule]:
    return await ScheduleStore(db).list_all()


async def create_schedule(db: AsyncSession, payload: ScheduleCreate) -> Schedule:
    """
    Validate and persist a new schedule.

    Missing duration and timezone are filled from DEFAULT_SHIFT_DURATION_MINUTES
    and DEFAULT_TIMEZONE.
    """
    settings = get_settings()
    duration = payload.duration_minutes
    if duration is None:
        duration = settings.DEFAULT_SHIFT_DURATION_MINUTES
    timezone_name = payload.timezone or settings.DEFAULT_TIMEZONE

    validate_schedule_fields(
        payload.cron_expr,
        timezone_name,
        duration,
        payload.start_date,
        payload.end_date,
    )

    schedule = await ScheduleStore(db).create(
        Schedule(
            name=payload.name,
            description=payload.description,
            cron_expr=" ".join(payload.cron_expr.split()),
            duration_minutes=duration,
            timezone=timezone_name,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    )
    logger.info("Schedule %s created (%r, %s)", schedule.id, schedule.cron_expr, timezone_name)
    return schedule


async def update_schedule(
    db: AsyncSession,
    schedule_id: int,
    payload: ScheduleUpdate,
) -> Schedule:
    """
    Apply a partial update.

    The merged result is validated as a whole. Existing bookings are left as
    they are, including their shift_end.
    """
    store = ScheduleStore(db)
    schedule = await store.get(schedule_id)
    if schedule is None:
        raise ScheduleNotFound(f"Schedule {schedule_id} not found.")

    changes = payload.model_dump(exclude_unset=True)
    if "cron_expr" in changes and changes["cron_expr"] is not None:
        changes["cron_expr"] = " ".join(changes["cron_expr"].split())

    merged = {
        "cron_expr": schedule.cron_expr,
        "timezone": schedule.timezone,
        "duration_minutes": schedule.duration_minutes,
        "start_date": schedule.start_date,
        "end_date": schedule.end_date,
    }
    merged.update({k: v for k, v in changes.items() if k in merged})

    if merged["cron_expr"] is None or ("name" in changes and not changes["name"]):
        raise ValidationFailed("name and cron_expr cannot be removed.")
    validate_schedule_fields(
        merged["cron_expr"],
        merged["timezone"],
        merged["duration_minutes"],
        merged["start_date"],
        merged["end_date"],
    )

    schedule = await store.update(schedule, changes)
    logger.info("Schedule %s updated: %s", schedule_id, sorted(changes))
    return schedule


async def delete_schedule(db: AsyncSession, schedule_id: int) -> None:
    """Delete a schedule and everything booked against it."""
    store = ScheduleStore(db)
    schedule = await store.get(schedule_id)
    if schedule is None:
        raise ScheduleNotFound(f"Schedule {schedule_id} not found.")
    await store.delete(schedule)
    logger.info("Schedule %s deleted", schedule_id)
