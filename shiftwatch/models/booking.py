# shiftwatch/models/booking.py
from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from shiftwatch.db.base import Base
from shiftwatch.db.types import UTCDateTime, utcnow


class Booking(Base):
    """
    One user's reservation of one shift occurrence.

    `shift_end` is computed from the schedule duration when the booking is
    created and is not recomputed if the schedule changes afterwards.
    """

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    schedule_id = Column(
        Integer,
        ForeignKey("schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    shift_start = Column(UTCDateTime, nullable=False, index=True)
    shift_end = Column(UTCDateTime, nullable=False)

    buddy_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    buddy_name = Column(String(255), nullable=True)
    buddy_phone = Column(String(32), nullable=True)

    checked_in_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "schedule_id",
            "shift_start",
            name="uq_bookings_schedule_shift_start",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking id={self.id} user_id={self.user_id} "
            f"schedule_id={self.schedule_id} start={self.shift_start}>"
        )
