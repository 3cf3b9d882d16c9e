# shiftwatch/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from shiftwatch.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(..., description="Overall health status.", examples=["ok"])
    app_name: str = Field(..., description="Name of the running application.", examples=["ShiftWatch"])
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    default_timezone: str = Field(
        ...,
        description="Timezone applied to schedules that do not define one.",
        examples=["UTC"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) of this health check.",
        examples=["2025-01-01T10:30:00Z"],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for the ShiftWatch service",
    description=(
        "Lightweight endpoint to verify that the scheduling backend is up.\n\n"
        "It does not touch the database, so it stays green while the store is "
        "degraded; use it for liveness probes and post-deploy smoke tests."
    ),
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        default_timezone=settings.DEFAULT_TIMEZONE,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
