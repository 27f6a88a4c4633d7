"""
Product listing API Routes
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smartpick.api.deps import get_current_seller
from smartpick.core.database import get_db
from smartpick.models import User
from smartpick.schemas.product import (
    CatalogueProduct,
    PauseRequest,
    ProductCreate,
    ProductFilters,
    ProductMutationResponse,
    ProductRepost,
    format_catalogue_product,
    format_product,
)
from smartpick.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


@router.post("/create", response_model=ProductMutationResponse)
async def create_product(
    payload: ProductCreate,
    current_user: User = Depends(get_current_seller),
    db: AsyncSession = Depends(get_db),
):
    product = await ProductService(db).create_listing(current_user, payload)
    return ProductMutationResponse(product=format_product(product))


@router.post("/repost", response_model=ProductMutationResponse)
async def repost_product(
    payload: ProductRepost,
    current_user: User = Depends(get_current_seller),
    db: AsyncSession = Depends(get_db),
):
    product = await ProductService(db).repost(current_user, payload)
    return ProductMutationResponse(product=format_product(product))


@router.post("/pause", response_model=ProductMutationResponse)
async def pause_product(
    payload: PauseRequest,
    current_user: User = Depends(get_current_seller),
    db: AsyncSession = Depends(get_db),
):
    product = await ProductService(db).set_paused(current_user, payload.product_id, payload.paused)
    return ProductMutationResponse(product=format_product(product))


@router.get("/list", response_model=List[CatalogueProduct])
async def list_products(
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    business_type: Optional[str] = Query(None, alias="businessType"),
    sort: Literal["newest", "price_asc", "price_desc"] = "newest",
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Public catalogue; no authentication."""
    filters = ProductFilters(
        search=search,
        min_price=min_price,
        max_price=max_price,
        business_type=business_type,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    rows = await ProductService(db).list_available(filters)
    return [format_catalogue_product(product, business) for product, business in rows]
