# shiftwatch/api/routes/recurring_assignments.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shiftwatch.api.dependencies.caller import require_admin
from shiftwatch.api.routes.shifts import default_window
from shiftwatch.db.session import get_db
from shiftwatch.schemas.recurring_assignment import (
    MaterializationSummary,
    MaterializeRequest,
    RecurringAssignmentCreate,
    RecurringAssignmentRead,
)
from shiftwatch.services import recurring as recurring_service

router = APIRouter(
    prefix="/admin/recurring-assignments",
    tags=["Recurring assignments"],
    dependencies=[Depends(require_admin)],
)


@router.post(
    "",
    response_model=RecurringAssignmentRead,
    status_code=HTTPStatus.CREATED,
    summary="Create a standing weekly assignment",
    description=(
        "Record that a user covers a schedule's shift every week on "
        "`day_of_week` (0 = Sunday) at the local `time_slot` (HH:MM-HH:MM). "
        "Bookings are only created when materialization runs."
    ),
    responses={
        404: {"description": "User or schedule not found."},
        422: {"description": "Malformed time slot or duplicate assignment."},
    },
)
async def create_assignment(
    payload: RecurringAssignmentCreate,
    db: AsyncSession = Depends(get_db),
) -> RecurringAssignmentRead:
    assignment = await recurring_service.create_recurring_assignment(db, payload)
    return RecurringAssignmentRead.model_validate(assignment)


@router.get(
    "",
    response_model=list[RecurringAssignmentRead],
    summary="List active recurring assignments",
)
async def list_assignments(
    user_id: int | None = Query(default=None, ge=1, description="Only this user's assignments."),
    db: AsyncSession = Depends(get_db),
) -> list[RecurringAssignmentRead]:
    assignments = await recurring_service.list_recurring_assignments(db, user_id=user_id)
    return [RecurringAssignmentRead.model_validate(a) for a in assignments]


@router.delete(
    "/{assignment_id}",
    status_code=HTTPStatus.NO_CONTENT,
    response_class=Response,
    summary="Deactivate a recurring assignment",
    responses={404: {"description": "Assignment not found or already inactive."}},
)
async def deactivate_assignment(
    assignment_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await recurring_service.deactivate_recurring_assignment(db, assignment_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.post(
    "/materialize",
    response_model=MaterializationSummary,
    summary="Create bookings from recurring assignments",
    description=(
        "Walk the unbooked slots of the window and book every slot matching an "
        "active assignment. Slots taken concurrently are reported as skipped.\n\n"
        "Intended to be called periodically by a scheduler."
    ),
)
async def materialize(
    payload: MaterializeRequest | None = None,
    db: AsyncSession = Depends(get_db),
) -> MaterializationSummary:
    payload = payload or MaterializeRequest()
    start, end = default_window(payload.from_time, payload.to_time)
    return await recurring_service.materialize_recurring_assignments(db, start, end)
