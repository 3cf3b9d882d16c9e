# shiftwatch/schemas/recurring_assignment.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RecurringAssignmentCreate(BaseModel):
    """
    Payload for a standing weekly assignment of a user to a schedule's shift.
    """

    user_id: int = Field(..., ge=1, description="User who covers the shift.", examples=[42])
    schedule_id: int = Field(..., ge=1, description="Schedule of the shift.", examples=[1])
    day_of_week: int = Field(
        ...,
        ge=0,
        le=6,
        description="Local weekday, 0 = Sunday .. 6 = Saturday.",
        examples=[1],
    )
    time_slot: str = Field(
        ...,
        description="Local shift span as HH:MM-HH:MM.",
        examples=["18:00-20:00"],
    )
    buddy_name: str | None = Field(default=None, description="Optional buddy name.")
    description: str | None = Field(default=None, description="Optional notes.")


class RecurringAssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., examples=[3])
    user_id: int = Field(..., examples=[42])
    schedule_id: int = Field(..., examples=[1])
    day_of_week: int = Field(..., examples=[1])
    time_slot: str = Field(..., examples=["18:00-20:00"])
    buddy_name: str | None = None
    description: str | None = None
    is_active: bool = Field(..., examples=[True])
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MaterializeRequest(BaseModel):
    """
    Window over which recurring assignments are turned into bookings.
    """

    from_time: datetime | None = Field(
        default=None,
        alias="from",
        description="Window start (UTC). Defaults to now.",
    )
    to_time: datetime | None = Field(
        default=None,
        alias="to",
        description="Window end (UTC). Defaults to from + the default query window.",
    )

    model_config = ConfigDict(populate_by_name=True)


class MaterializationSummary(BaseModel):
    """
    Outcome of one materialization run.
    """

    examined: int = Field(..., description="Unbooked slots examined.", examples=[14])
    materialized: int = Field(..., description="Bookings created.", examples=[2])
    skipped: int = Field(
        ...,
        description="Matching slots that were booked by someone else meanwhile.",
        examples=[0],
    )
    bookings: list[int] = Field(
        default_factory=list,
        description="Identifiers of the bookings created in this run.",
    )
