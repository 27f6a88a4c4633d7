"""
Product listing schemas
"""
from datetime import datetime
from typing import Optional, Literal

from pydantic import Field, model_validator

from smartpick.core.utils import ensure_utc
from smartpick.models import ProductStatus
from smartpick.schemas.base import CamelModel

PICKUP_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ProductCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    original_price: float = Field(..., gt=0)
    discounted_price: float = Field(..., gt=0)
    quantity: int = Field(..., ge=1)
    image_url: Optional[str] = None
    pickup_time_start: str = Field(..., pattern=PICKUP_TIME_PATTERN)
    pickup_time_end: str = Field(..., pattern=PICKUP_TIME_PATTERN)
    available_date: datetime
    expiration_hours: Optional[int] = Field(None, ge=1, le=72)
    # Admins only; partners always list under their own approved business
    business_id: Optional[int] = None

    @model_validator(mode="after")
    def check_discount(self):
        if self.discounted_price > self.original_price:
            raise ValueError("discountedPrice cannot exceed originalPrice")
        return self


class ProductRepost(CamelModel):
    product_id: int = Field(..., gt=0)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    original_price: Optional[float] = Field(None, gt=0)
    discounted_price: Optional[float] = Field(None, gt=0)
    quantity: Optional[int] = Field(None, ge=1)
    available_date: Optional[datetime] = None
    expiration_hours: Optional[int] = Field(None, ge=1, le=72)


class PauseRequest(CamelModel):
    product_id: int = Field(..., gt=0)
    paused: bool


class ProductResponse(CamelModel):
    id: int
    business_id: int
    title: str
    description: Optional[str] = None
    original_price: float
    discounted_price: float
    quantity: int
    status: ProductStatus
    image_url: Optional[str] = None
    pickup_time_start: str
    pickup_time_end: str
    available_date: datetime
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ProductMutationResponse(CamelModel):
    success: bool = True
    product: ProductResponse


class CatalogueProduct(ProductResponse):
    business_name: str
    business_type: str
    business_address: Optional[str] = None


class ProductFilters(CamelModel):
    search: Optional[str] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    business_type: Optional[str] = None
    sort: Literal["newest", "price_asc", "price_desc"] = "newest"
    limit: int = Field(50, ge=1, le=200)
    offset: int = Field(0, ge=0)


def _utc(value):
    return ensure_utc(value) if value is not None else None


def format_product(product) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        business_id=product.business_id,
        title=product.title,
        description=product.description,
        original_price=float(product.original_price),
        discounted_price=float(product.discounted_price),
        quantity=product.quantity,
        status=product.status,
        image_url=product.image_url,
        pickup_time_start=product.pickup_time_start,
        pickup_time_end=product.pickup_time_end,
        available_date=_utc(product.available_date),
        expires_at=_utc(product.expires_at),
        created_at=_utc(product.created_at),
    )


def format_catalogue_product(product, business) -> CatalogueProduct:
    return CatalogueProduct(
        **format_product(product).model_dump(),
        business_name=business.name,
        business_type=business.business_type,
        business_address=business.address,
    )
