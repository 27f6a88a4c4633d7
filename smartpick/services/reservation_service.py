"""
Reservation Lifecycle Service

Single owner of every reservation transition:

    create  -> lock user + product, check penalty/limits/stock, decrement, insert
    cancel  -> lock reservation + product, RESERVED -> CANCELLED, restore stock
    redeem  -> lock reservation, check ownership/status/expiry/code, -> REDEEMED
    sweep   -> lock expired RESERVED rows, -> EXPIRED, penalise owners, restore stock

Each operation is one transaction on the caller's session. A failed
precondition raises a SmartPickError after rolling back, so stock and
reservation rows never change partially.

Row locks use SELECT ... FOR UPDATE. Multi-row locks are taken in ascending
id order (reservations, then users, then products).
"""
import logging
import time
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from smartpick.core.config import settings
from smartpick.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PenaltyActiveError,
)
from smartpick.core.utils import utcnow, ensure_utc
from smartpick.models import (
    Business,
    Product,
    ProductStatus,
    Reservation,
    ReservationStatus,
    User,
    generate_verification_code,
)
from smartpick.services.penalty import apply_penalty

logger = logging.getLogger(__name__)


class ReservationService:
    """
    Reservation lifecycle controller.

    Args:
        db: Session the operations run on; committed or rolled back here.
        clock: Returns the current UTC time. Injected by tests.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    # =========================================================================
    # LOCKING HELPERS
    # =========================================================================

    async def _lock_user(self, user_id: int) -> Optional[User]:
        return await self.db.scalar(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    async def _lock_product(self, product_id: int) -> Optional[Product]:
        return await self.db.scalar(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    async def _restore_stock(self, product_quantities: Dict[int, int]) -> None:
        """Give held units back to their products, locking in id order."""
        if not product_quantities:
            return
        result = await self.db.execute(
            select(Product)
            .where(Product.id.in_(sorted(product_quantities)))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        for product in result.scalars():
            product.restore_stock(product_quantities[product.id])

    async def _apply_penalties(self, user_ids: Iterable[int], now: datetime) -> None:
        """
        One escalation per affected user.

        The user rows are locked and the count is read after the lock, so two
        overlapping sweeps escalate from the latest committed count.
        """
        result = await self.db.execute(
            select(User)
            .where(User.id.in_(sorted(set(user_ids))))
            .order_by(User.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        for user in result.scalars():
            penalty_until = apply_penalty(user, now)
            logger.info(
                f"RESERVATION_METRIC: penalty_applied "
                f"user_id={user.id} penalty_count={user.penalty_count} "
                f"penalty_until={penalty_until.isoformat()}"
            )

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def create(self, user: User, product_id: int, quantity: int) -> Reservation:
        """
        Reserve `quantity` units of a product for `user`.

        Raises:
            PenaltyActiveError: user is blocked until penalty_until
            ConflictError: limit reached, duplicate hold, unavailable, short stock
            NotFoundError: product does not exist
        """
        start_time = time.time()
        now = self._now()

        try:
            locked_user = await self._lock_user(user.id)
            if locked_user is None:
                raise NotFoundError("User not found.")

            if locked_user.is_penalized(now):
                raise PenaltyActiveError(
                    "You are currently under penalty and cannot create reservations.",
                    penalty_until=ensure_utc(locked_user.penalty_until),
                )

            active_count = await self.db.scalar(
                select(func.count(Reservation.id))
                .where(Reservation.user_id == user.id)
                .where(Reservation.status == ReservationStatus.RESERVED)
            )
            if active_count >= settings.MAX_ACTIVE_RESERVATIONS:
                raise ConflictError(
                    f"You cannot have more than {settings.MAX_ACTIVE_RESERVATIONS} active reservations.",
                    code="RESERVATION_LIMIT",
                )

            existing_id = await self.db.scalar(
                select(Reservation.id)
                .where(Reservation.user_id == user.id)
                .where(Reservation.product_id == product_id)
                .where(Reservation.status == ReservationStatus.RESERVED)
                .limit(1)
            )
            if existing_id is not None:
                raise ConflictError(
                    "You already have an active reservation for this product.",
                    code="DUPLICATE_RESERVATION",
                )

            # Serializes concurrent reservations against the same product
            product = await self._lock_product(product_id)
            if product is None:
                raise NotFoundError("Product not found.")
            if product.status in (ProductStatus.PAUSED, ProductStatus.EXPIRED):
                raise ConflictError(
                    "This product is no longer available.",
                    code="PRODUCT_UNAVAILABLE",
                )
            # A sold-out product is a stock shortage, not a withdrawn listing
            if product.status == ProductStatus.SOLD_OUT or product.quantity < quantity:
                raise ConflictError(
                    "Not enough stock available for the requested quantity.",
                    code="INSUFFICIENT_STOCK",
                    details={"available": product.quantity, "requested": quantity},
                )

            product.take_stock(quantity)

            reservation = Reservation(
                product_id=product.id,
                user_id=user.id,
                quantity=quantity,
                status=ReservationStatus.RESERVED,
                verification_code=generate_verification_code(),
                reserved_at=now,
                expires_at=Reservation.create_expiry(now),
            )
            self.db.add(reservation)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"RESERVATION_METRIC: created "
            f"reservation_id={reservation.id} user_id={user.id} product_id={product_id} "
            f"quantity={quantity} remaining={product.quantity} duration_ms={duration_ms:.2f}"
        )
        return reservation

    async def cancel(self, user: User, reservation_id: int) -> Reservation:
        """Cancel the caller's own active, unexpired reservation and restore stock."""
        now = self._now()

        try:
            reservation = await self.db.scalar(
                select(Reservation)
                .where(Reservation.id == reservation_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            if reservation is None:
                raise NotFoundError("Reservation not found.")
            if reservation.user_id != user.id:
                raise AuthorizationError("You do not have permission to cancel this reservation.")
            if reservation.status != ReservationStatus.RESERVED:
                raise ConflictError(
                    f"Cannot cancel reservation with status: {reservation.status.value}.",
                    code="INVALID_STATUS",
                )
            if reservation.is_expired(now):
                # Left for the sweep, which also applies the no-show penalty
                raise ConflictError(
                    "This reservation has expired and can no longer be cancelled.",
                    code="RESERVATION_EXPIRED",
                )

            reservation.status = ReservationStatus.CANCELLED
            await self._restore_stock({reservation.product_id: reservation.quantity})
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"RESERVATION_METRIC: cancelled "
            f"reservation_id={reservation.id} user_id={user.id} "
            f"product_id={reservation.product_id} restored={reservation.quantity}"
        )
        return reservation

    async def redeem(self, actor: User, reservation_id: int, verification_code: str) -> Reservation:
        """
        Redeem a reservation at pickup. Partners may only redeem reservations
        for their own businesses; admins may redeem any. Stock stays consumed.
        """
        if not (actor.is_partner or actor.is_admin):
            raise AuthorizationError("Forbidden: Insufficient permissions.")

        now = self._now()

        try:
            row = (
                await self.db.execute(
                    select(Reservation, Business.owner_id)
                    .join(Product, Reservation.product_id == Product.id)
                    .join(Business, Product.business_id == Business.id)
                    .where(Reservation.id == reservation_id)
                    .with_for_update(of=Reservation)
                    .execution_options(populate_existing=True)
                )
            ).first()
            if row is None:
                raise NotFoundError("Reservation not found.")

            reservation, owner_id = row
            if actor.is_partner and owner_id != actor.id:
                raise AuthorizationError("You do not have permission to redeem this reservation.")
            if reservation.status != ReservationStatus.RESERVED:
                raise ConflictError(
                    f"Cannot redeem reservation with status: {reservation.status.value}.",
                    code="INVALID_STATUS",
                )
            # Redeemable up to and including the deadline instant
            if ensure_utc(reservation.expires_at) < now:
                raise ConflictError("This reservation has expired.", code="RESERVATION_EXPIRED")
            if reservation.verification_code != verification_code:
                raise ConflictError("Invalid verification code.", code="INVALID_CODE")

            reservation.status = ReservationStatus.REDEEMED
            reservation.redeemed_at = now
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"RESERVATION_METRIC: redeemed "
            f"reservation_id={reservation.id} actor_id={actor.id} "
            f"product_id={reservation.product_id} quantity={reservation.quantity}"
        )
        return reservation

    async def sweep_expired(
        self,
        user_id: Optional[int] = None,
        business_ids: Optional[Sequence[int]] = None,
    ) -> int:
        """
        Settle timed-out holds.

        Scope:
            neither       - every reservation (periodic sweeper / endpoint)
            user_id       - one user's reservations (lazy, before listing)
            business_ids  - reservations on those businesses' products

        Returns the number of reservations moved to EXPIRED. Terminal rows are
        excluded by the status filter, so repeating a sweep is a no-op.
        """
        if business_ids is not None and len(business_ids) == 0:
            return 0

        now = self._now()
        stmt = (
            select(Reservation)
            .where(Reservation.status == ReservationStatus.RESERVED)
            .where(Reservation.expires_at < now)
        )
        if user_id is not None:
            stmt = stmt.where(Reservation.user_id == user_id)
        if business_ids is not None:
            stmt = stmt.join(Product, Reservation.product_id == Product.id).where(
                Product.business_id.in_(list(business_ids))
            )
        stmt = (
            stmt.order_by(Reservation.id)
            .with_for_update(of=Reservation)
            .execution_options(populate_existing=True)
        )

        try:
            expired: List[Reservation] = list((await self.db.execute(stmt)).scalars())
            if not expired:
                await self.db.commit()
                logger.debug("No expired reservations to sweep")
                return 0

            product_quantities: Dict[int, int] = defaultdict(int)
            for reservation in expired:
                reservation.status = ReservationStatus.EXPIRED
                product_quantities[reservation.product_id] += reservation.quantity

            await self._apply_penalties((r.user_id for r in expired), now)
            await self._restore_stock(product_quantities)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"RESERVATION_METRIC: swept "
            f"expired={len(expired)} products={len(product_quantities)} "
            f"units_restored={sum(product_quantities.values())} "
            f"scope={'user' if user_id is not None else 'business' if business_ids is not None else 'all'}"
        )
        return len(expired)

    # =========================================================================
    # READS
    # =========================================================================

    async def list_for_user(self, user: User) -> list:
        """The caller's reservations, newest first, as (Reservation, Product, Business) rows."""
        await self.sweep_expired(user_id=user.id)

        result = await self.db.execute(
            select(Reservation, Product, Business)
            .join(Product, Reservation.product_id == Product.id)
            .join(Business, Product.business_id == Business.id)
            .where(Reservation.user_id == user.id)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.all())

    async def list_for_partner(self, actor: User) -> list:
        """
        Active reservations awaiting pickup at the actor's businesses (every
        business for admins), soonest expiry first, as
        (Reservation, Product, Business, User) rows.
        """
        if not (actor.is_partner or actor.is_admin):
            raise AuthorizationError("Forbidden: Insufficient permissions.")

        business_ids = list(
            await self.db.scalars(select(Business.id).where(Business.owner_id == actor.id))
        )

        if actor.is_admin:
            await self.sweep_expired()
        elif not business_ids:
            return []
        else:
            await self.sweep_expired(business_ids=business_ids)

        stmt = (
            select(Reservation, Product, Business, User)
            .join(Product, Reservation.product_id == Product.id)
            .join(Business, Product.business_id == Business.id)
            .join(User, Reservation.user_id == User.id)
            .where(Reservation.status == ReservationStatus.RESERVED)
        )
        if not actor.is_admin:
            stmt = stmt.where(Business.id.in_(business_ids))

        result = await self.db.execute(
            stmt.order_by(Reservation.expires_at.asc(), Reservation.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.all())
