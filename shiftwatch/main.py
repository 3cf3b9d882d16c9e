# shiftwatch/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shiftwatch.api.routes import (
    admin_bookings,
    bookings,
    health,
    recurring_assignments,
    schedules,
    shifts,
)
from shiftwatch.core.config import get_settings
from shiftwatch.core.logging_config import configure_logging
from shiftwatch.db.session import init_db_for_startup
from shiftwatch.services.errors import SchedulingError

logger = logging.getLogger(__name__)


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    """
    Map a SchedulingError to `{"detail": ..., "code": ...}` with its status.
    """
    return JSONResponse(
        status_code=int(exc.status_code),
        content={"detail": exc.message, "code": exc.code},
    )


def create_app() -> FastAPI:
    """
    Application factory for the ShiftWatch service.
    """
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Volunteer patrol scheduling backend: expands recurring schedules into\n"
            "concrete shift slots, lets volunteers book exactly one slot at a time\n"
            "without double-booking, and tracks attendance."
        ),
        version="0.1.0",
    )

    app.add_exception_handler(SchedulingError, scheduling_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(shifts.router)
    app.include_router(bookings.router)
    app.include_router(admin_bookings.router)
    app.include_router(schedules.router)
    app.include_router(recurring_assignments.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        if settings.AUTO_CREATE_SCHEMA:
            await init_db_for_startup()
        logger.info("%s started (env=%s)", settings.APP_NAME, settings.APP_ENV)

    return app


app = create_app()
