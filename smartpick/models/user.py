"""
User model

Accounts are created by the identity service; this service reads the role
and owns the penalty counters.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, CheckConstraint
from sqlalchemy.orm import relationship

from smartpick.core.database import Base
from smartpick.core.utils import ensure_utc


class UserRole(str, PyEnum):
    USER = "user"
    PARTNER = "partner"
    ADMIN = "admin"


class User(Base):
    """
    User account.

    Penalty state:
        penalty_count  - number of no-show escalations so far (never decays)
        penalty_until  - reservations are blocked while this is in the future
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("penalty_count >= 0", name="ck_users_penalty_count_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    penalty_count = Column(Integer, default=0, nullable=False)
    penalty_until = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    businesses = relationship("Business", back_populates="owner")
    reservations = relationship("Reservation", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_partner(self) -> bool:
        return self.role == UserRole.PARTNER

    def is_penalized(self, now: datetime) -> bool:
        """Check if the user is currently blocked from reserving."""
        until = ensure_utc(self.penalty_until)
        return until is not None and until > now
