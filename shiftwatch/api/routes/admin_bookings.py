# shiftwatch/api/routes/admin_bookings.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.api.dependencies.caller import require_admin
from shiftwatch.db.session import get_db
from shiftwatch.schemas.booking import AssignRequest, BookingRead, UnassignRequest
from shiftwatch.services.reservation import ReservationEngine

router = APIRouter(
    prefix="/admin",
    tags=["Admin bookings"],
    dependencies=[Depends(require_admin)],
)


@router.post(
    "/bookings/assign",
    response_model=BookingRead,
    status_code=HTTPStatus.CREATED,
    summary="Assign a user to a shift slot",
    description=(
        "Create a booking on behalf of any user. The slot is validated exactly "
        "like a normal reservation and still cannot be double-booked."
    ),
    responses={
        400: {"description": "Start time is not an occurrence of the schedule."},
        404: {"description": "Schedule or user not found."},
        409: {"description": "Slot already booked."},
    },
)
async def assign_user(
    payload: AssignRequest,
    db: AsyncSession = Depends(get_db),
) -> BookingRead:
    booking = await ReservationEngine.for_session(db).assign(
        target_user_id=payload.user_id,
        schedule_id=payload.schedule_id,
        start=payload.start_time,
        buddy_name=payload.buddy_name,
    )
    return BookingRead.model_validate(booking)


@router.post(
    "/bookings/unassign",
    status_code=HTTPStatus.NO_CONTENT,
    response_class=Response,
    summary="Release a shift slot",
    description="Delete the booking holding a slot, whoever owns it.",
    responses={404: {"description": "Schedule not found or slot not booked."}},
)
async def unassign_slot(
    payload: UnassignRequest,
    db: AsyncSession = Depends(get_db),
) -> Response:
    await ReservationEngine.for_session(db).unassign(payload.schedule_id, payload.start_time)
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.get(
    "/users/{user_id}/bookings",
    response_model=list[BookingRead],
    summary="List a user's bookings",
    responses={404: {"description": "User not found."}},
)
async def list_user_bookings(
    user_id: int = Path(..., ge=1, description="User whose bookings are listed."),
    db: AsyncSession = Depends(get_db),
) -> list[BookingRead]:
    bookings = await ReservationEngine.for_session(db).bookings_for_user(user_id)
    return [BookingRead.model_validate(b) for b in bookings]
