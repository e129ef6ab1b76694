from barberbook.gateways.booking_gateway import (
    BookingGateway,
    GatewayError,
    HttpBookingGateway,
    StoreBookingGateway,
)

__all__ = ["BookingGateway", "GatewayError", "HttpBookingGateway", "StoreBookingGateway"]
