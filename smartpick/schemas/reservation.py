"""
Reservation schemas
"""
from datetime import datetime
from typing import Optional, List

from pydantic import Field

from smartpick.core.utils import ensure_utc
from smartpick.models import ReservationStatus
from smartpick.schemas.base import CamelModel


# ----- Requests -----

class CreateReservationRequest(CamelModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=1)


class CancelReservationRequest(CamelModel):
    reservation_id: int = Field(..., gt=0)


class RedeemReservationRequest(CamelModel):
    reservation_id: int = Field(..., gt=0)
    verification_code: str = Field(..., pattern=r"^\d{6}$")


# ----- Responses -----

class ReservationHold(CamelModel):
    """What the customer needs to pick up: the id, the code and the deadline."""
    id: int
    verification_code: str
    expires_at: datetime


class CreateReservationResponse(CamelModel):
    success: bool = True
    reservation: ReservationHold


class CancelReservationResponse(CamelModel):
    success: bool = True
    message: str


class ReservationDetail(CamelModel):
    id: int
    product_id: int
    user_id: int
    quantity: int
    status: ReservationStatus
    verification_code: str
    reserved_at: datetime
    expires_at: datetime
    redeemed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class RedeemReservationResponse(CamelModel):
    success: bool = True
    message: str
    reservation: ReservationDetail


class CheckExpiredResponse(CamelModel):
    success: bool = True
    processed_count: int


class UserReservationRow(CamelModel):
    reservation_id: int
    reservation_status: ReservationStatus
    quantity: int
    verification_code: str
    reserved_at: datetime
    expires_at: datetime
    redeemed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    product_id: int
    product_title: str
    product_image_url: Optional[str] = None
    original_price: float
    discounted_price: float
    pickup_time_start: str
    pickup_time_end: str
    available_date: datetime
    business_id: int
    business_name: str
    business_address: Optional[str] = None


class PartnerReservationRow(UserReservationRow):
    user_id: int
    user_display_name: Optional[str] = None
    user_email: str


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


def reservation_detail(reservation) -> ReservationDetail:
    return ReservationDetail(
        id=reservation.id,
        product_id=reservation.product_id,
        user_id=reservation.user_id,
        quantity=reservation.quantity,
        status=reservation.status,
        verification_code=reservation.verification_code,
        reserved_at=_utc(reservation.reserved_at),
        expires_at=_utc(reservation.expires_at),
        redeemed_at=_utc(reservation.redeemed_at),
        created_at=_utc(reservation.created_at),
    )


def _row_fields(reservation, product, business) -> dict:
    return dict(
        reservation_id=reservation.id,
        reservation_status=reservation.status,
        quantity=reservation.quantity,
        verification_code=reservation.verification_code,
        reserved_at=_utc(reservation.reserved_at),
        expires_at=_utc(reservation.expires_at),
        redeemed_at=_utc(reservation.redeemed_at),
        created_at=_utc(reservation.created_at),
        product_id=product.id,
        product_title=product.title,
        product_image_url=product.image_url,
        original_price=float(product.original_price),
        discounted_price=float(product.discounted_price),
        pickup_time_start=product.pickup_time_start,
        pickup_time_end=product.pickup_time_end,
        available_date=_utc(product.available_date),
        business_id=business.id,
        business_name=business.name,
        business_address=business.address,
    )


def user_reservation_rows(rows) -> List[UserReservationRow]:
    """Format (Reservation, Product, Business) rows."""
    return [UserReservationRow(**_row_fields(r, p, b)) for r, p, b in rows]


def partner_reservation_rows(rows) -> List[PartnerReservationRow]:
    """Format (Reservation, Product, Business, User) rows."""
    return [
        PartnerReservationRow(
            **_row_fields(r, p, b),
            user_id=u.id,
            user_display_name=u.display_name,
            user_email=u.email,
        )
        for r, p, b, u in rows
    ]
