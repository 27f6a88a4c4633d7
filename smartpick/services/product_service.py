"""
Product Listing Service

Partners publish surplus food as product listings under an approved
business; customers browse the public catalogue. Stock on a live listing
is only moved by the reservation service. Reposting always creates a new
row so the stock baseline of the old listing is never rewritten.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from smartpick.core.config import settings
from smartpick.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationFailedError,
)
from smartpick.core.utils import utcnow, ensure_utc
from smartpick.models import Business, BusinessStatus, Product, ProductStatus, User
from smartpick.schemas.product import ProductCreate, ProductRepost, ProductFilters

logger = logging.getLogger(__name__)

NO_APPROVED_BUSINESS = (
    "No approved business found. Please create and get your business approved first."
)


class ProductService:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    @staticmethod
    def _require_seller(actor: User) -> None:
        if not (actor.is_partner or actor.is_admin):
            raise AuthorizationError("Forbidden: Insufficient permissions.")

    def _expiry(self, now: datetime, hours: Optional[int]) -> datetime:
        return now + timedelta(
            hours=hours if hours is not None else settings.PRODUCT_DEFAULT_EXPIRATION_HOURS
        )

    async def _listing_business(self, actor: User, business_id: Optional[int]) -> Business:
        if actor.is_admin:
            if business_id is None:
                raise ValidationFailedError("businessId is required for admin listings.")
            business = await self.db.get(Business, business_id)
            if business is None:
                raise NotFoundError("Business not found.")
            if business.status != BusinessStatus.APPROVED:
                raise ValidationFailedError("Business is not approved.")
            return business

        business = await self.db.scalar(
            select(Business)
            .where(Business.owner_id == actor.id)
            .where(Business.status == BusinessStatus.APPROVED)
            .order_by(Business.id)
            .limit(1)
        )
        if business is None:
            raise ValidationFailedError(NO_APPROVED_BUSINESS)
        return business

    async def _owned_product(self, actor: User, product_id: int) -> Product:
        row = (
            await self.db.execute(
                select(Product, Business.owner_id)
                .join(Business, Product.business_id == Business.id)
                .where(Product.id == product_id)
                .with_for_update(of=Product)
                .execution_options(populate_existing=True)
            )
        ).first()
        if row is None:
            raise NotFoundError("Product not found.")
        product, owner_id = row
        if not actor.is_admin and owner_id != actor.id:
            raise AuthorizationError("You do not have permission to modify this product.")
        return product

    async def create_listing(self, actor: User, data: ProductCreate) -> Product:
        self._require_seller(actor)
        now = self._now()

        try:
            business = await self._listing_business(actor, data.business_id)
            product = Product(
                business_id=business.id,
                title=data.title,
                description=data.description,
                original_price=data.original_price,
                discounted_price=data.discounted_price,
                quantity=data.quantity,
                status=ProductStatus.AVAILABLE,
                image_url=data.image_url,
                pickup_time_start=data.pickup_time_start,
                pickup_time_end=data.pickup_time_end,
                available_date=ensure_utc(data.available_date),
                expires_at=self._expiry(now, data.expiration_hours),
            )
            self.db.add(product)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"PRODUCT_METRIC: listed product_id={product.id} business_id={business.id} "
            f"quantity={product.quantity} actor_id={actor.id}"
        )
        return product

    async def repost(self, actor: User, data: ProductRepost) -> Product:
        """Copy an existing listing into a fresh row with optional overrides."""
        self._require_seller(actor)
        now = self._now()

        try:
            original = await self._owned_product(actor, data.product_id)
            original_price = data.original_price if data.original_price is not None else original.original_price
            discounted_price = (
                data.discounted_price if data.discounted_price is not None else original.discounted_price
            )
            if float(discounted_price) > float(original_price):
                raise ValidationFailedError("discountedPrice cannot exceed originalPrice")

            product = Product(
                business_id=original.business_id,
                title=data.title or original.title,
                description=data.description if data.description is not None else original.description,
                original_price=original_price,
                discounted_price=discounted_price,
                quantity=data.quantity if data.quantity is not None else original.quantity,
                status=ProductStatus.AVAILABLE,
                image_url=original.image_url,
                pickup_time_start=original.pickup_time_start,
                pickup_time_end=original.pickup_time_end,
                available_date=ensure_utc(data.available_date or now),
                expires_at=self._expiry(now, data.expiration_hours),
            )
            if product.quantity == 0:
                product.status = ProductStatus.SOLD_OUT
            self.db.add(product)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"PRODUCT_METRIC: reposted product_id={product.id} from_product_id={original.id} "
            f"quantity={product.quantity} actor_id={actor.id}"
        )
        return product

    async def set_paused(self, actor: User, product_id: int, paused: bool) -> Product:
        self._require_seller(actor)

        try:
            product = await self._owned_product(actor, product_id)
            if paused:
                if product.status not in (ProductStatus.AVAILABLE, ProductStatus.SOLD_OUT):
                    raise ConflictError(
                        f"Cannot pause product with status: {product.status.value}.",
                        code="INVALID_STATUS",
                    )
                product.status = ProductStatus.PAUSED
            else:
                if product.status != ProductStatus.PAUSED:
                    raise ConflictError(
                        f"Cannot resume product with status: {product.status.value}.",
                        code="INVALID_STATUS",
                    )
                product.status = ProductStatus.SOLD_OUT if product.quantity == 0 else ProductStatus.AVAILABLE
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"PRODUCT_METRIC: {'paused' if paused else 'resumed'} product_id={product.id} "
            f"status={product.status.value} actor_id={actor.id}"
        )
        return product

    async def list_available(self, filters: ProductFilters) -> list:
        """Public catalogue as (Product, Business) rows."""
        now = self._now()
        start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)

        query = (
            select(Product, Business)
            .join(Business, Product.business_id == Business.id)
            .where(Product.status == ProductStatus.AVAILABLE)
            .where(Product.quantity > 0)
            .where(Product.expires_at > now)
            .where(Product.available_date >= start_of_today)
        )

        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.where(
                or_(Product.title.ilike(pattern), Product.description.ilike(pattern))
            )
        if filters.min_price is not None:
            query = query.where(Product.discounted_price >= filters.min_price)
        if filters.max_price is not None:
            query = query.where(Product.discounted_price <= filters.max_price)
        if filters.business_type:
            query = query.where(Business.business_type == filters.business_type)

        if filters.sort == "price_asc":
            query = query.order_by(Product.discounted_price.asc(), Product.id.asc())
        elif filters.sort == "price_desc":
            query = query.order_by(Product.discounted_price.desc(), Product.id.asc())
        else:
            query = query.order_by(Product.created_at.desc(), Product.id.desc())

        result = await self.db.execute(query.offset(filters.offset).limit(filters.limit))
        return list(result.all())
