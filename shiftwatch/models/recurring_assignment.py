# shiftwatch/models/recurring_assignment.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from shiftwatch.db.base import Base
from shiftwatch.db.types import UTCDateTime, utcnow


class RecurringAssignment(Base):
    """
    Standing instruction that a user covers a schedule's shift on a weekday.

    `day_of_week` uses 0 = Sunday .. 6 = Saturday and `time_slot` is the local
    "HH:MM-HH:MM" span of the shift. Rows are soft deleted via `is_active`.
    """

    __tablename__ = "recurring_assignments"

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

    day_of_week = Column(Integer, nullable=False)
    time_slot = Column(String(11), nullable=False)

    buddy_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "day_of_week",
            "schedule_id",
            "time_slot",
            name="uq_recurring_assignments_user_day_schedule_slot",
        ),
        CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6",
            name="ck_recurring_assignments_day_of_week",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringAssignment id={self.id} user_id={self.user_id} "
            f"schedule_id={self.schedule_id} day={self.day_of_week} "
            f"slot={self.time_slot} active={self.is_active}>"
        )
