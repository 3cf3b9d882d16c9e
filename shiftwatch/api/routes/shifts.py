# shiftwatch/api/routes/shifts.py
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.api.dependencies.caller import Caller, require_admin
from shiftwatch.core.config import get_settings
from shiftwatch.db.session import get_db
from shiftwatch.db.types import utcnow
from shiftwatch.schemas.slot import AdminShiftSlot, AvailableSlot
from shiftwatch.services.availability import AvailabilityResolver, ResolvedSlot

router = APIRouter(tags=["Shifts"])


def default_window(
    from_time: datetime | None,
    to_time: datetime | None,
) -> tuple[datetime, datetime]:
    """
    Fill in an omitted window: `from` defaults to now and `to` to
    `from` + DEFAULT_QUERY_WINDOW_DAYS.
    """
    start = from_time or utcnow()
    end = to_time or start + timedelta(days=get_settings().DEFAULT_QUERY_WINDOW_DAYS)
    return start, end


def to_available_slot(slot: ResolvedSlot) -> AvailableSlot:
    return AvailableSlot(
        schedule_id=slot.occurrence.schedule_id,
        schedule_name=slot.schedule_name,
        start_time=slot.occurrence.start,
        end_time=slot.occurrence.end,
        timezone=slot.timezone,
    )


def to_admin_slot(slot: ResolvedSlot) -> AdminShiftSlot:
    booking = slot.booking
    return AdminShiftSlot(
        schedule_id=slot.occurrence.schedule_id,
        schedule_name=slot.schedule_name,
        start_time=slot.occurrence.start,
        end_time=slot.occurrence.end,
        timezone=slot.timezone,
        is_booked=booking is not None,
        booking_id=booking.id if booking else None,
        user_id=booking.user_id if booking else None,
        buddy_name=booking.buddy_name if booking else None,
    )


@router.get(
    "/shifts/available",
    response_model=list[AvailableSlot],
    summary="List bookable shift slots",
    description=(
        "Expand every active schedule over the requested window and return the "
        "occurrences nobody has booked yet, ordered by start time (ties by "
        "schedule id).\n\n"
        "- `from` defaults to now, `to` to `from` + the default query window.\n"
        "- `limit` caps the whole result; 0 or omitted means the service default.\n"
        "- A window ending exactly at local midnight includes that whole day."
    ),
    responses={
        422: {
            "description": "Malformed window (end not after start, too long) or negative limit.",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Window end must be after window start.",
                        "code": "VALIDATION_ERROR",
                    }
                }
            },
        },
    },
)
async def list_available_shifts(
    from_time: datetime | None = Query(
        default=None,
        alias="from",
        description="Window start (ISO 8601). Naive values are UTC.",
        examples=["2025-01-06T00:00:00Z"],
    ),
    to_time: datetime | None = Query(
        default=None,
        alias="to",
        description="Window end (ISO 8601, exclusive). Naive values are UTC.",
        examples=["2025-01-10T00:00:00Z"],
    ),
    limit: int | None = Query(default=None, description="Maximum number of slots."),
    db: AsyncSession = Depends(get_db),
) -> list[AvailableSlot]:
    start, end = default_window(from_time, to_time)
    slots = await AvailabilityResolver.for_session(db).available_slots(start, end, limit)
    return [to_available_slot(slot) for slot in slots]


@router.get(
    "/admin/shifts",
    response_model=list[AdminShiftSlot],
    summary="Roster view of all shift slots (admin)",
    description=(
        "Like `/shifts/available`, but returns booked slots too, together with "
        "the booking id, the booked user and the buddy name."
    ),
)
async def list_all_shifts(
    from_time: datetime | None = Query(default=None, alias="from"),
    to_time: datetime | None = Query(default=None, alias="to"),
    limit: int | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
) -> list[AdminShiftSlot]:
    start, end = default_window(from_time, to_time)
    slots = await AvailabilityResolver.for_session(db).all_slots(start, end, limit)
    return [to_admin_slot(slot) for slot in slots]
