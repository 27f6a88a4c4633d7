"""
Tests for product listings: service rules and the /api/products routes.
"""
from datetime import timedelta

import pytest

from smartpick.core.exceptions import AuthorizationError, ConflictError, ValidationFailedError
from smartpick.core.utils import ensure_utc
from smartpick.models import Business, BusinessStatus, Product, ProductStatus, User
from smartpick.schemas.product import ProductCreate, ProductFilters, ProductRepost
from smartpick.services.product_service import NO_APPROVED_BUSINESS, ProductService


def _listing(clock, **overrides) -> dict:
    body = {
        "title": "Khachapuri",
        "description": "Cheese bread",
        "originalPrice": 12.0,
        "discountedPrice": 6.0,
        "quantity": 4,
        "pickupTimeStart": "19:00",
        "pickupTimeEnd": "21:00",
        "availableDate": clock.now.isoformat(),
    }
    body.update(overrides)
    return body


@pytest.fixture
def products(session_factory, clock):
    async def _call(method, actor_id, *args):
        async with session_factory() as db:
            service = ProductService(db, clock=clock)
            if actor_id is None:
                return await getattr(service, method)(*args)
            actor = await db.get(User, actor_id)
            return await getattr(service, method)(actor, *args)
    return _call


class TestProductService:

    @pytest.mark.asyncio
    async def test_partner_lists_under_approved_business(self, products, seed, clock):
        product = await products("create_listing", seed.partner, ProductCreate(**_listing(clock)))

        assert product.business_id == seed.bakery
        assert product.status == ProductStatus.AVAILABLE
        assert ensure_utc(product.expires_at) == clock.now + timedelta(hours=9)

    @pytest.mark.asyncio
    async def test_custom_expiration(self, products, seed, clock):
        data = ProductCreate(**_listing(clock, expirationHours=2))
        product = await products("create_listing", seed.partner, data)

        assert ensure_utc(product.expires_at) == clock.now + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_partner_without_approved_business(self, products, seed, session_factory, clock):
        async with session_factory() as db:
            db.add(Business(
                owner_id=seed.lonely_partner,
                name="Pending Deli",
                business_type="deli",
                status=BusinessStatus.PENDING,
            ))
            await db.commit()

        with pytest.raises(ValidationFailedError, match="No approved business found"):
            await products("create_listing", seed.lonely_partner, ProductCreate(**_listing(clock)))

    @pytest.mark.asyncio
    async def test_admin_must_name_business(self, products, seed, clock):
        with pytest.raises(ValidationFailedError):
            await products("create_listing", seed.admin, ProductCreate(**_listing(clock)))

        product = await products(
            "create_listing", seed.admin, ProductCreate(**_listing(clock, businessId=seed.cafe))
        )
        assert product.business_id == seed.cafe

    @pytest.mark.asyncio
    async def test_customer_cannot_list(self, products, seed, clock):
        with pytest.raises(AuthorizationError):
            await products("create_listing", seed.alice, ProductCreate(**_listing(clock)))

    def test_discount_cannot_exceed_original(self, clock):
        with pytest.raises(Exception):
            ProductCreate(**_listing(clock, discountedPrice=20.0))

    @pytest.mark.asyncio
    async def test_repost_creates_new_row(self, products, seed, clock, session_factory):
        clock.advance(hours=1)
        product = await products(
            "repost", seed.partner, ProductRepost(product_id=seed.product, quantity=8)
        )

        assert product.id != seed.product
        assert product.quantity == 8
        assert product.title == "Day-old croissants"
        assert ensure_utc(product.expires_at) == clock.now + timedelta(hours=9)
        async with session_factory() as db:
            original = await db.get(Product, seed.product)
            assert original.quantity == 5

    @pytest.mark.asyncio
    async def test_repost_requires_ownership(self, products, seed):
        with pytest.raises(AuthorizationError):
            await products("repost", seed.other_partner, ProductRepost(product_id=seed.product))

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, products, seed):
        paused = await products("set_paused", seed.partner, seed.product, True)
        assert paused.status == ProductStatus.PAUSED

        resumed = await products("set_paused", seed.partner, seed.product, False)
        assert resumed.status == ProductStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_resume_empty_product_is_sold_out(self, products, seed, make_product):
        product_id = await make_product(seed.bakery, quantity=0, status=ProductStatus.PAUSED)

        resumed = await products("set_paused", seed.partner, product_id, False)
        assert resumed.status == ProductStatus.SOLD_OUT

    @pytest.mark.asyncio
    async def test_cannot_pause_expired_listing(self, products, seed, make_product):
        product_id = await make_product(seed.bakery, status=ProductStatus.EXPIRED)

        with pytest.raises(ConflictError, match="Cannot pause product with status: expired."):
            await products("set_paused", seed.partner, product_id, True)

    @pytest.mark.asyncio
    async def test_catalogue_filters(self, products, seed, clock, make_product):
        await make_product(seed.cafe, title="Espresso beans", discounted_price=9, original_price=15)
        await make_product(seed.bakery, title="Sold out loaf", quantity=0)
        await make_product(seed.bakery, title="Paused pie", status=ProductStatus.PAUSED)
        await make_product(seed.bakery, title="Stale", expires_at=clock.now - timedelta(minutes=1))

        rows = await products("list_available", None, ProductFilters())
        assert {p.title for p, _ in rows} == {"Day-old croissants", "Espresso beans"}

        rows = await products("list_available", None, ProductFilters(search="ESPRESSO"))
        assert [p.title for p, _ in rows] == ["Espresso beans"]

        rows = await products("list_available", None, ProductFilters(business_type="bakery"))
        assert [p.title for p, _ in rows] == ["Day-old croissants"]

        rows = await products("list_available", None, ProductFilters(max_price=5))
        assert [p.title for p, _ in rows] == ["Day-old croissants"]

        rows = await products("list_available", None, ProductFilters(sort="price_desc"))
        assert [p.title for p, _ in rows] == ["Espresso beans", "Day-old croissants"]


class TestProductRoutes:

    @pytest.mark.asyncio
    async def test_create_listing(self, client, seed, clock, auth_headers):
        response = await client.post(
            "/api/products/create", json=_listing(clock), headers=auth_headers(seed.partner)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["product"]["businessId"] == seed.bakery
        assert body["product"]["status"] == "available"

    @pytest.mark.asyncio
    async def test_no_approved_business(self, client, seed, clock, auth_headers):
        response = await client.post(
            "/api/products/create", json=_listing(clock), headers=auth_headers(seed.lonely_partner)
        )

        assert response.status_code == 400
        assert response.json() == {"error": NO_APPROVED_BUSINESS}

    @pytest.mark.asyncio
    async def test_customer_forbidden(self, client, seed, clock, auth_headers):
        response = await client.post(
            "/api/products/create", json=_listing(clock), headers=auth_headers(seed.alice)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_bad_pickup_time(self, client, seed, clock, auth_headers):
        response = await client.post(
            "/api/products/create",
            json=_listing(clock, pickupTimeStart="25:00"),
            headers=auth_headers(seed.partner),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_pause_then_catalogue(self, client, seed, auth_headers):
        response = await client.post(
            "/api/products/pause",
            json={"productId": seed.product, "paused": True},
            headers=auth_headers(seed.partner),
        )
        assert response.status_code == 200
        assert response.json()["product"]["status"] == "paused"

        listing = await client.get("/api/products/list")
        assert listing.status_code == 200
        assert listing.json() == []

    @pytest.mark.asyncio
    async def test_repost(self, client, seed, auth_headers):
        response = await client.post(
            "/api/products/repost",
            json={"productId": seed.product, "title": "Fresh croissants"},
            headers=auth_headers(seed.partner),
        )

        assert response.status_code == 200
        product = response.json()["product"]
        assert product["id"] != seed.product
        assert product["title"] == "Fresh croissants"

    @pytest.mark.asyncio
    async def test_public_catalogue(self, client, seed):
        response = await client.get("/api/products/list", params={"businessType": "bakery"})

        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["businessName"] == "Bakery"
        assert rows[0]["quantity"] == 5
