"""
Reservation API Routes

Thin transport over ReservationService: authenticate, validate the body,
call the service, shape the camelCase response. Service errors are mapped
to `{error}` envelopes by the registered exception handlers.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smartpick.api.deps import get_current_user, get_current_seller
from smartpick.core.config import settings
from smartpick.core.database import get_db
from smartpick.core.rate_limit import limiter
from smartpick.core.utils import ensure_utc
from smartpick.models import User
from smartpick.schemas.reservation import (
    CancelReservationRequest,
    CancelReservationResponse,
    CheckExpiredResponse,
    CreateReservationRequest,
    CreateReservationResponse,
    PartnerReservationRow,
    RedeemReservationRequest,
    RedeemReservationResponse,
    ReservationHold,
    UserReservationRow,
    partner_reservation_rows,
    reservation_detail,
    user_reservation_rows,
)
from smartpick.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("/create", response_model=CreateReservationResponse)
@limiter.limit(settings.RATE_LIMIT_RESERVATIONS)
async def create_reservation(
    request: Request,
    payload: CreateReservationRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reservation = await ReservationService(db).create(
        current_user, payload.product_id, payload.quantity
    )
    return CreateReservationResponse(
        reservation=ReservationHold(
            id=reservation.id,
            verification_code=reservation.verification_code,
            expires_at=ensure_utc(reservation.expires_at),
        )
    )


@router.post("/cancel", response_model=CancelReservationResponse)
@limiter.limit(settings.RATE_LIMIT_RESERVATIONS)
async def cancel_reservation(
    request: Request,
    payload: CancelReservationRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ReservationService(db).cancel(current_user, payload.reservation_id)
    return CancelReservationResponse(message="Reservation cancelled successfully.")


@router.post("/redeem", response_model=RedeemReservationResponse)
@limiter.limit(settings.RATE_LIMIT_RESERVATIONS)
async def redeem_reservation(
    request: Request,
    payload: RedeemReservationRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reservation = await ReservationService(db).redeem(
        current_user, payload.reservation_id, payload.verification_code
    )
    return RedeemReservationResponse(
        message="Reservation redeemed successfully.",
        reservation=reservation_detail(reservation),
    )


@router.post("/check_expired", response_model=CheckExpiredResponse)
async def check_expired(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Run the global expiry sweep on demand."""
    processed = await ReservationService(db).sweep_expired()
    return CheckExpiredResponse(processed_count=processed)


@router.get("/my", response_model=List[UserReservationRow])
async def my_reservations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await ReservationService(db).list_for_user(current_user)
    return user_reservation_rows(rows)


@router.get("/partner", response_model=List[PartnerReservationRow])
async def partner_reservations(
    current_user: User = Depends(get_current_seller),
    db: AsyncSession = Depends(get_db),
):
    rows = await ReservationService(db).list_for_partner(current_user)
    return partner_reservation_rows(rows)
