# shiftwatch/schemas/slot.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class AvailableSlot(BaseModel):
    """
    A bookable shift occurrence.
    """

    schedule_id: int = Field(..., description="Schedule producing the slot.", examples=[1])
    schedule_name: str = Field(..., description="Schedule name.", examples=["Evening patrol"])
    start_time: datetime = Field(
        ...,
        description="Slot start (UTC).",
        examples=["2025-01-06T18:00:00Z"],
    )
    end_time: datetime = Field(
        ...,
        description="Slot end (UTC).",
        examples=["2025-01-06T20:00:00Z"],
    )
    timezone: str = Field(
        ...,
        description="Timezone in which the schedule's rule is evaluated.",
        examples=["Africa/Johannesburg"],
    )


class AdminShiftSlot(AvailableSlot):
    """
    A slot in the admin roster view, booked or not.
    """

    is_booked: bool = Field(..., description="Whether a booking holds this slot.")
    booking_id: int | None = Field(None, description="Booking holding the slot.")
    user_id: int | None = Field(None, description="User holding the slot.")
    buddy_name: str | None = Field(None, description="Buddy recorded on the booking.")
