"""
Reservation model

A reservation holds N units of a product for one user for a fixed window.
Stock is decremented when the reservation is created; it is restored when
the hold is cancelled or expires and consumed for good on redemption.
"""
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship

from smartpick.core.config import settings
from smartpick.core.database import Base
from smartpick.core.utils import ensure_utc


class ReservationStatus(str, PyEnum):
    """
    Reservation state machine.

    RESERVED is the only non-terminal state:
        RESERVED -> REDEEMED   (partner enters the right code, stock consumed)
        RESERVED -> CANCELLED  (owner cancels before expiry, stock restored)
        RESERVED -> EXPIRED    (sweep after expiry, stock restored, penalty)
    """
    RESERVED = "reserved"
    REDEEMED = "redeemed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({
    ReservationStatus.REDEEMED,
    ReservationStatus.CANCELLED,
    ReservationStatus.EXPIRED,
})

VERIFICATION_CODE_LENGTH = 6


def generate_verification_code() -> str:
    """
    Six decimal digits in 100000-999999.

    Codes are not unique across reservations; redemption always checks the
    code together with the reservation id.
    """
    return str(100000 + secrets.randbelow(900000))


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_reservation_quantity_positive"),
        Index("ix_reservations_status_expires", "status", "expires_at"),
        Index("ix_reservations_user_status", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    status = Column(
        Enum(ReservationStatus, name="reservation_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ReservationStatus.RESERVED,
    )
    verification_code = Column(String(VERIFICATION_CODE_LENGTH), nullable=False)

    reserved_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="reservations")
    product = relationship("Product", back_populates="reservations")

    def __repr__(self):
        return f"<Reservation(id={self.id}, status='{self.status}', quantity={self.quantity})>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the hold window has passed (regardless of status)."""
        now = now or datetime.now(timezone.utc)
        return ensure_utc(self.expires_at) <= now

    @classmethod
    def create_expiry(cls, reserved_at: datetime, hold_minutes: Optional[int] = None) -> datetime:
        """Calculate the fixed, non-renewable expiry for a new hold."""
        minutes = hold_minutes if hold_minutes is not None else settings.RESERVATION_HOLD_MINUTES
        return reserved_at + timedelta(minutes=minutes)
