# shiftwatch/models/user.py
from sqlalchemy import Column, Integer, String

from shiftwatch.db.base import Base
from shiftwatch.db.types import UTCDateTime, utcnow

USER_ROLES = ("admin", "owl", "guest")


class User(Base):
    """
    A volunteer known to the scheduler.

    Accounts are managed elsewhere; the scheduler only reads them to check
    that a user exists and to resolve buddies by phone number.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(32), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    role = Column(String(16), nullable=False, default="guest")

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} phone={self.phone} role={self.role}>"
