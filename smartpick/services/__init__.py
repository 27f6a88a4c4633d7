from smartpick.services.reservation_service import ReservationService
from smartpick.services.product_service import ProductService
from smartpick.services.penalty import penalty_duration, apply_penalty
