# shiftwatch/models/schedule.py
from sqlalchemy import CheckConstraint, Column, Date, Integer, String, Text

from shiftwatch.db.base import Base
from shiftwatch.db.types import UTCDateTime, utcnow


class Schedule(Base):
    """
    A recurring patrol schedule.

    `cron_expr` is a five-field cron rule evaluated in `timezone`; every match
    inside the optional [start_date, end_date] range is one shift lasting
    `duration_minutes`.
    """

    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    cron_expr = Column(String(128), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    timezone = Column(String(64), nullable=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_schedules_duration_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<Schedule id={self.id} name={self.name!r} cron={self.cron_expr!r} "
            f"tz={self.timezone}>"
        )
