# shiftwatch/api/routes/bookings.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.api.dependencies.caller import Caller, get_caller
from shiftwatch.db.session import get_db
from shiftwatch.schemas.booking import AttendanceUpdate, BookingCreate, BookingRead
from shiftwatch.services.attendance import AttendanceTracker
from shiftwatch.services.reservation import ReservationEngine
from shiftwatch.services.stores import BookingStore

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post(
    "",
    response_model=BookingRead,
    status_code=HTTPStatus.CREATED,
    summary="Book a shift slot for the caller",
    description=(
        "Reserve one occurrence of a schedule for the calling user.\n\n"
        "`start_time` must be an exact occurrence of the schedule's recurrence "
        "rule inside its active dates. Only one booking can ever hold a slot: "
        "when two callers race for the same slot, one gets 201 and the other 409."
    ),
    responses={
        201: {"description": "Booking created."},
        400: {
            "description": "The start time is not an occurrence of the schedule.",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "2025-01-06T18:30:00+00:00 is not a valid shift start for schedule 1.",
                        "code": "SHIFT_TIME_INVALID",
                    }
                }
            },
        },
        404: {"description": "Schedule not found."},
        409: {
            "description": "The slot is already booked.",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "This shift slot is already booked.",
                        "code": "BOOKING_CONFLICT",
                    }
                }
            },
        },
    },
)
async def create_booking(
    payload: BookingCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> BookingRead:
    booking = await ReservationEngine.for_session(db).reserve(
        user_id=caller.user_id,
        schedule_id=payload.schedule_id,
        start=payload.start_time,
        buddy_name=payload.buddy_name,
        buddy_phone=payload.buddy_phone,
    )
    return BookingRead.model_validate(booking)


@router.get(
    "/me",
    response_model=list[BookingRead],
    summary="List the caller's bookings",
    description="All bookings held by the caller, latest shift first.",
)
async def list_my_bookings(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> list[BookingRead]:
    bookings = await BookingStore(db).list_for_user(caller.user_id)
    return [BookingRead.model_validate(b) for b in bookings]


@router.post(
    "/{booking_id}/cancel",
    status_code=HTTPStatus.NO_CONTENT,
    response_class=Response,
    summary="Cancel one of the caller's bookings",
    description=(
        "Delete a booking owned by the caller. Cancellation is refused (400) "
        "once the shift starts within the configured cut-off."
    ),
    responses={
        400: {"description": "Too close to the shift start."},
        403: {"description": "The booking belongs to someone else."},
        404: {"description": "Booking not found."},
    },
)
async def cancel_booking(
    booking_id: int = Path(..., ge=1, description="Booking to cancel."),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Response:
    await ReservationEngine.for_session(db).cancel(booking_id, caller.user_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.patch(
    "/{booking_id}/attendance",
    response_model=BookingRead,
    summary="Record or clear attendance for a booking",
    description=(
        "`attended=true` stores the check-in time, keeping the first one if "
        "called again. `attended=false` clears it.\n\n"
        "Allowed for the booking owner and for admins."
    ),
    responses={
        403: {"description": "Caller is neither the owner nor an admin."},
        404: {"description": "Booking not found."},
    },
)
async def update_attendance(
    payload: AttendanceUpdate,
    booking_id: int = Path(..., ge=1, description="Booking to update."),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> BookingRead:
    booking = await AttendanceTracker.for_session(db).set_attendance(
        booking_id=booking_id,
        caller_user_id=caller.user_id,
        attended=payload.attended,
        is_admin=caller.is_admin,
    )
    return BookingRead.model_validate(booking)
