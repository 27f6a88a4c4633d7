from fastapi import APIRouter

from smartpick.api.routes import reservations, products

api_router = APIRouter(prefix="/api")
api_router.include_router(reservations.router)
api_router.include_router(products.router)
