from smartpick.models.user import User, UserRole
from smartpick.models.business import Business, BusinessStatus
from smartpick.models.product import Product, ProductStatus
from smartpick.models.reservation import (
    Reservation,
    ReservationStatus,
    TERMINAL_STATUSES,
    generate_verification_code,
)
