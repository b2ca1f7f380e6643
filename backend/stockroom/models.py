# backend/stockroom/models.py
"""
Core models.

Only the owner record lives here. Every catalog and order row is scoped to a
user through a `user_id` foreign key; domain models live in
stockroom.apps.<app>.models.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String

from .database import Base, generate_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email}>"
