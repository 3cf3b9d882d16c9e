# shiftwatch/schemas/schedule.py
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# --------------------------------------------------------------------------
# Base schema shared by create/read
# --------------------------------------------------------------------------

class ScheduleBase(BaseModel):
    """
    Shared fields used by ScheduleCreate and ScheduleRead.
    """

    name: str = Field(
        ...,
        min_length=1,
        description="Human-readable schedule name.",
        examples=["Evening patrol"],
    )
    description: str | None = Field(
        default=None,
        description="Free-form notes shown to volunteers.",
    )
    cron_expr: str = Field(
        ...,
        description=(
            "Five-field cron rule (minute hour day-of-month month day-of-week) "
            "evaluated in the schedule's timezone."
        ),
        examples=["0 18 * * *"],
    )
    timezone: str | None = Field(
        default=None,
        description="IANA timezone name. Defaults to the service timezone.",
        examples=["Africa/Johannesburg"],
    )
    start_date: date | None = Field(
        default=None,
        description="First local date (inclusive) on which shifts occur.",
        examples=["2025-01-01"],
    )
    end_date: date | None = Field(
        default=None,
        description="Last local date (inclusive) on which shifts occur.",
        examples=["2025-12-31"],
    )


# --------------------------------------------------------------------------
# Create schema (POST /schedules)
# --------------------------------------------------------------------------

class ScheduleCreate(ScheduleBase):
    """
    Schema for creating a schedule. `duration_minutes` defaults to the
    service-wide shift duration when omitted.
    """

    duration_minutes: int | None = Field(
        default=None,
        description="Length of every shift in minutes (must be positive).",
        examples=[120],
    )


# --------------------------------------------------------------------------
# Update schema (PATCH /schedules/{id})
# --------------------------------------------------------------------------

class ScheduleUpdate(BaseModel):
    """
    Schema for updating a schedule.
    All fields are optional; only provided fields are updated.
    """

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None)
    cron_expr: str | None = Field(default=None)
    duration_minutes: int | None = Field(default=None)
    timezone: str | None = Field(default=None)
    start_date: date | None = Field(default=None)
    end_date: date | None = Field(default=None)


# --------------------------------------------------------------------------
# Read schema (GET /schedules, GET /schedules/{id})
# --------------------------------------------------------------------------

class ScheduleRead(ScheduleBase):
    """
    Response schema for reading a schedule.
    Includes the DB-generated fields.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Schedule identifier.", examples=[1])
    duration_minutes: int = Field(..., description="Shift length in minutes.", examples=[120])
    created_at: datetime | None = Field(None, description="Creation timestamp (UTC).")
    updated_at: datetime | None = Field(None, description="Last update timestamp (UTC).")
