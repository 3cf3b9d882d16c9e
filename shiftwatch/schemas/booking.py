# shiftwatch/schemas/booking.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BookingCreate(BaseModel):
    """
    Payload for reserving a shift slot for the calling user.
    """

    schedule_id: int = Field(..., ge=1, description="Schedule of the shift.", examples=[1])
    start_time: datetime = Field(
        ...,
        description=(
            "Start of the shift as an absolute instant. Naive values are "
            "interpreted as UTC."
        ),
        examples=["2025-01-06T18:00:00Z"],
    )
    buddy_name: str | None = Field(
        default=None,
        description="Name of the patrol buddy, if any.",
        examples=["Thandi"],
    )
    buddy_phone: str | None = Field(
        default=None,
        description="Phone of the buddy; a registered user is linked automatically.",
        examples=["+27821234567"],
    )


class AssignRequest(BaseModel):
    """
    Admin payload to assign a user to a shift slot.
    """

    user_id: int = Field(..., ge=1, description="User who will hold the booking.", examples=[42])
    schedule_id: int = Field(..., ge=1, description="Schedule of the shift.", examples=[1])
    start_time: datetime = Field(
        ...,
        description="Start of the shift (UTC instant).",
        examples=["2025-01-06T18:00:00Z"],
    )
    buddy_name: str | None = Field(default=None, description="Optional buddy name.")


class UnassignRequest(BaseModel):
    """
    Admin payload to release a shift slot regardless of who holds it.
    """

    schedule_id: int = Field(..., ge=1, description="Schedule of the shift.", examples=[1])
    start_time: datetime = Field(
        ...,
        description="Start of the shift (UTC instant).",
        examples=["2025-01-06T18:00:00Z"],
    )


class AttendanceUpdate(BaseModel):
    attended: bool = Field(
        ...,
        description="True records a check-in (first one wins), false clears it.",
        examples=[True],
    )


class BookingRead(BaseModel):
    """
    Public representation of a booking.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Booking identifier.", examples=[7])
    user_id: int = Field(..., description="User holding the booking.", examples=[42])
    schedule_id: int = Field(..., description="Schedule of the shift.", examples=[1])
    shift_start: datetime = Field(..., description="Shift start (UTC).")
    shift_end: datetime = Field(
        ...,
        description="Shift end (UTC), fixed when the booking was created.",
    )
    buddy_user_id: int | None = Field(None, description="Registered buddy, if any.")
    buddy_name: str | None = Field(None, description="Buddy name, if any.")
    buddy_phone: str | None = Field(None, description="Buddy phone, if any.")
    checked_in_at: datetime | None = Field(
        None,
        description="Check-in timestamp (UTC); null while not attended.",
    )
    created_at: datetime | None = Field(None, description="Creation timestamp (UTC).")
