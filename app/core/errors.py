"""Domain errors raised by the booking services.

Each error carries a stable ``code`` (returned to clients) and the HTTP status
it maps to; ``app.main`` registers a single handler for the base class.
"""


class BookingError(Exception):
    code = "BookingError"
    status_code = 400
    default_message = "Booking request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ShowNotFound(BookingError):
    code = "ShowNotFound"
    status_code = 404
    default_message = "Show not found"


class BookingNotFound(BookingError):
    code = "BookingNotFound"
    status_code = 404
    default_message = "Booking not found"


class SeatUnavailable(BookingError):
    code = "SeatUnavailable"
    status_code = 409
    default_message = "Seat already booked"


class SeatLockedByOther(BookingError):
    code = "SeatLockedByOther"
    status_code = 409
    default_message = "Seat temporarily locked"


class LockExpiredOrMissing(BookingError):
    code = "LockExpiredOrMissing"
    status_code = 409
    default_message = "Seats are no longer locked"


class ConcurrentUpdate(BookingError):
    code = "ConcurrentUpdate"
    status_code = 409
    default_message = "Show was modified concurrently, please retry"


class InvalidSeat(BookingError):
    code = "InvalidSeat"
    status_code = 400
    default_message = "Invalid seat"


class InvalidBookingRequest(BookingError):
    code = "InvalidBookingRequest"
    status_code = 400
    default_message = "Missing booking details"


class InvalidSignature(BookingError):
    code = "InvalidSignature"
    status_code = 400
    default_message = "Invalid signature"


class AlreadyFinalized(BookingError):
    code = "AlreadyFinalized"
    status_code = 400
    default_message = "Booking already finalized"


class CancellationWindowClosed(BookingError):
    code = "CancellationWindowClosed"
    status_code = 400
    default_message = "Cancellation window has closed"


class PaymentGatewayError(BookingError):
    code = "PaymentGatewayError"
    status_code = 500
    default_message = "Booking failed"
