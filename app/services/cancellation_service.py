import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.core.cache import Cache, invalidate, my_bookings_key
from app.core.config import settings
from app.core.errors import AlreadyFinalized, BookingNotFound, CancellationWindowClosed
from app.models.booking import (
    BOOKING_ACTIVE,
    BOOKING_CANCELLED,
    PAYMENT_FAILED,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    PAYMENT_REFUNDED,
)
from app.services.audit_service import log_audit
from app.services.booking_service import load_booking_for_update
from app.services.inventory import drop_booking_locks, load_show_for_update, show_transaction, utcnow

logger = logging.getLogger(__name__)


def cancellation_cutoff() -> timedelta:
    return timedelta(minutes=settings.CANCELLATION_CUTOFF_MINUTES)


@show_transaction
def _cancel(db: Session, user_id: str, booking_id: str, now: datetime) -> dict:
    booking = load_booking_for_update(db, booking_id)
    if booking is None or booking.user_id != user_id:
        raise BookingNotFound()
    if booking.booking_status != BOOKING_ACTIVE:
        raise AlreadyFinalized(f"Booking already {booking.booking_status}")

    show = load_show_for_update(db, booking.show_id)
    if show.starts_at(settings.SHOW_TIMEZONE) - now <= cancellation_cutoff():
        raise CancellationWindowClosed()

    booking.booking_status = BOOKING_CANCELLED
    booking.cancelled_at = now
    released: list[str] = []
    if booking.payment_status == PAYMENT_PAID:
        # Refund settlement with the gateway happens out of band.
        booking.payment_status = PAYMENT_REFUNDED
        seats = set(booking.seats)
        released = [s for s in show.booked_seats or [] if s in seats]
        show.booked_seats = [s for s in show.booked_seats or [] if s not in seats]
    elif booking.payment_status == PAYMENT_PENDING:
        booking.payment_status = PAYMENT_FAILED
        released = [l["seatId"] for l in drop_booking_locks(show, booking)]

    log_audit(db, actor_user_id=user_id, action="booking_cancelled", entity_type="booking", entity_id=booking.id,
              details={"paymentStatus": booking.payment_status, "released": released})
    db.commit()
    return {
        "message": "Booking cancelled",
        "bookingId": booking.id,
        "paymentStatus": booking.payment_status,
        "bookingStatus": booking.booking_status,
        "releasedSeats": released,
    }


def cancel_booking(db: Session, user_id: str, booking_id: str, cache: Cache | None = None, now: datetime | None = None) -> dict:
    result = _cancel(db, user_id, booking_id, now or utcnow())
    invalidate(cache, [my_bookings_key(user_id)])
    logger.info("booking %s cancelled by %s, released %s", booking_id, user_id, result["releasedSeats"])
    return result
