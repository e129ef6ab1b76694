from barberbook.tools.booking_desk import BookingDesk, BookingOutcome
from barberbook.tools.messages import get_message

__all__ = ["BookingDesk", "BookingOutcome", "get_message"]
