from smartpick.schemas.reservation import (
    CreateReservationRequest,
    CancelReservationRequest,
    RedeemReservationRequest,
    CreateReservationResponse,
    CancelReservationResponse,
    RedeemReservationResponse,
    CheckExpiredResponse,
    ReservationHold,
    ReservationDetail,
    UserReservationRow,
    PartnerReservationRow,
    reservation_detail,
    user_reservation_rows,
    partner_reservation_rows,
)
from smartpick.schemas.product import (
    ProductCreate,
    ProductRepost,
    PauseRequest,
    ProductFilters,
    ProductResponse,
    ProductMutationResponse,
    CatalogueProduct,
    format_product,
    format_catalogue_product,
)
