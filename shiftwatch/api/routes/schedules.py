# shiftwatch/api/routes/schedules.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.api.dependencies.caller import require_admin
from shiftwatch.db.session import get_db
from shiftwatch.schemas.schedule import ScheduleCreate, ScheduleRead, ScheduleUpdate
from shiftwatch.services import schedules as schedule_service

router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.post(
    "",
    response_model=ScheduleRead,
    status_code=HTTPStatus.CREATED,
    summary="Create a recurring schedule (admin)",
    description=(
        "Register a patrol schedule defined by a five-field cron rule evaluated "
        "in the schedule's timezone.\n\n"
        "The rule, timezone, duration and active dates are validated before "
        "anything is stored; a rule that can never match a calendar day "
        "(e.g. `0 0 30 2 *`) is rejected."
    ),
    responses={
        201: {
            "description": "Schedule created.",
            "content": {
                "application/json": {
                    "example": {
                        "id": 1,
                        "name": "Evening patrol",
                        "description": None,
                        "cron_expr": "0 18 * * *",
                        "duration_minutes": 120,
                        "timezone": "Africa/Johannesburg",
                        "start_date": "2025-01-01",
                        "end_date": "2025-12-31",
                    }
                }
            },
        },
        422: {"description": "Invalid rule, timezone, duration or active dates."},
    },
)
async def create_schedule(
    payload: ScheduleCreate,
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_admin),
) -> ScheduleRead:
    schedule = await schedule_service.create_schedule(db, payload)
    return ScheduleRead.model_validate(schedule)


@router.get(
    "",
    response_model=list[ScheduleRead],
    summary="List schedules",
)
async def list_schedules(db: AsyncSession = Depends(get_db)) -> list[ScheduleRead]:
    schedules = await schedule_service.list_schedules(db)
    return [ScheduleRead.model_validate(s) for s in schedules]


@router.get(
    "/{schedule_id}",
    response_model=ScheduleRead,
    summary="Get a schedule by ID",
    responses={404: {"description": "Schedule not found."}},
)
async def get_schedule(
    schedule_id: int = Path(..., ge=1, description="Schedule identifier."),
    db: AsyncSession = Depends(get_db),
) -> ScheduleRead:
    schedule = await schedule_service.get_schedule(db, schedule_id)
    return ScheduleRead.model_validate(schedule)


@router.patch(
    "/{schedule_id}",
    response_model=ScheduleRead,
    summary="Partially update a schedule (admin)",
    description=(
        "Only provided fields change. Existing bookings keep their stored "
        "shift times, even if the duration changes."
    ),
    responses={
        404: {"description": "Schedule not found."},
        422: {"description": "The updated schedule would be invalid."},
    },
)
async def update_schedule(
    payload: ScheduleUpdate,
    schedule_id: int = Path(..., ge=1, description="Schedule identifier."),
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_admin),
) -> ScheduleRead:
    schedule = await schedule_service.update_schedule(db, schedule_id, payload)
    return ScheduleRead.model_validate(schedule)


@router.delete(
    "/{schedule_id}",
    status_code=HTTPStatus.NO_CONTENT,
    response_class=Response,
    summary="Delete a schedule (admin)",
    description="Deletes the schedule with all its bookings and recurring assignments.",
    responses={404: {"description": "Schedule not found."}},
)
async def delete_schedule(
    schedule_id: int = Path(..., ge=1, description="Schedule identifier."),
    db: AsyncSession = Depends(get_db),
    _admin=Depends(require_admin),
) -> Response:
    await schedule_service.delete_schedule(db, schedule_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)
