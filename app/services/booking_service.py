import logging
import random
import string
import uuid
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.cache import Cache, invalidate, my_bookings_key
from app.core.config import settings
from app.core.errors import (
    AlreadyFinalized,
    BookingNotFound,
    InvalidBookingRequest,
    InvalidSignature,
    LockExpiredOrMissing,
    PaymentGatewayError,
    SeatUnavailable,
)
from app.models.booking import (
    Booking,
    BOOKING_ACTIVE,
    PAYMENT_FAILED,
    PAYMENT_PAID,
    PAYMENT_PENDING,
)
from app.models.show import Show
from app.models.theatre import Theatre
from app.services.audit_service import log_audit
from app.services.inventory import (
    drop_booking_locks,
    drop_locks,
    load_show_for_update,
    lock_timeout,
    show_transaction,
    sweep_expired_locks,
    utcnow,
)
from app.services.lock_service import normalize_seats
from app.services.pricing import compute_amount
from app.services.razorpay_client import RazorpayClient, RazorpayError

logger = logging.getLogger(__name__)


def make_booking_ref() -> str:
    return "MQ-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=8))


def load_booking_for_update(db: Session, booking_id: str) -> Booking | None:
    return db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


@show_transaction
def _claim_locked_seats(db: Session, show_id: str, user_id: str, seats: list[str], movie_id: int | None, now: datetime):
    """Check the user still holds every seat, price them, and restart the hold clock for the payment window."""
    show = load_show_for_update(db, show_id)
    if movie_id is not None and int(movie_id) != show.movie_id:
        raise InvalidBookingRequest("movieId does not match the show")
    sweep_expired_locks(show, now)

    mine = {l["seatId"] for l in show.locked_seats or [] if l["userId"] == user_id}
    missing = [s for s in seats if s not in mine]
    if missing:
        db.commit()
        raise LockExpiredOrMissing()

    amount = compute_amount(show, seats)

    wanted = set(seats)
    refreshed = []
    for lock in show.locked_seats or []:
        if lock["userId"] == user_id and lock["seatId"] in wanted:
            lock = {**lock, "lockedAt": now.isoformat()}
        refreshed.append(lock)
    show.locked_seats = refreshed
    db.commit()
    return show.movie_id, amount


def create_booking(db: Session, gateway: RazorpayClient, user_id: str, show_id: str, seat_ids: Iterable[str],
                   movie_id: int | None = None, cache: Cache | None = None, now: datetime | None = None) -> dict:
    """Open a pending booking for seats the user currently holds, backed by a gateway order."""
    seats = normalize_seats(seat_ids)
    now = now or utcnow()
    show_movie_id, amount = _claim_locked_seats(db, show_id, user_id, seats, movie_id, now)

    for _ in range(10):
        ref = make_booking_ref()
        if not db.query(Booking).filter(Booking.booking_ref == ref).first():
            break
    else:
        raise PaymentGatewayError("could not allocate booking reference")

    # The gateway call happens outside the show transaction; no booking is written if it fails.
    try:
        order = gateway.create_order(
            amount_minor=int(round(amount * 100)),
            currency=settings.CURRENCY,
            receipt=f"rcpt_{ref}",
            notes={"bookingRef": ref, "showId": show_id},
        )
    except RazorpayError as e:
        logger.error("order creation failed for show %s user %s: %s", show_id, user_id, e)
        raise PaymentGatewayError() from e

    order_id = str(order.get("id") or "")
    if not order_id:
        logger.error("gateway returned no order id: %s", order)
        raise PaymentGatewayError()

    booking = Booking(
        id=str(uuid.uuid4()),
        booking_ref=ref,
        user_id=user_id,
        movie_id=show_movie_id,
        show_id=show_id,
        seats=list(seats),
        amount=amount,
        currency=settings.CURRENCY,
        payment_status=PAYMENT_PENDING,
        booking_status=BOOKING_ACTIVE,
        gateway_order_id=order_id,
        hold_expires_at=now + lock_timeout(),
        created_at=now,
    )
    db.add(booking)
    log_audit(db, actor_user_id=user_id, action="booking_created", entity_type="booking", entity_id=booking.id,
              details={"showId": show_id, "seats": seats, "amount": amount, "orderId": order_id})
    db.commit()
    invalidate(cache, [my_bookings_key(user_id)])
    logger.info("booking %s created for show %s seats %s amount %s", booking.id, show_id, ",".join(seats), amount)

    return {"bookingId": booking.id, "orderId": order_id, "amount": amount, "key": gateway.key_id}


@show_transaction
def _promote(db: Session, booking_id: str, order_id: str, payment_id: str, signature: str, now: datetime) -> tuple[Booking, bool]:
    booking = load_booking_for_update(db, booking_id)
    if booking is None:
        raise BookingNotFound()

    if booking.gateway_order_id != order_id:
        logger.warning("booking %s: order id %s does not match %s", booking_id, order_id, booking.gateway_order_id)
        log_audit(db, actor_user_id="razorpay", action="signature_rejected", entity_type="booking", entity_id=booking.id,
                  details={"reason": "order_mismatch", "orderId": order_id})
        db.commit()
        raise InvalidSignature()

    if booking.payment_status == PAYMENT_PAID:
        db.commit()
        return booking, False

    if booking.payment_status != PAYMENT_PENDING or booking.booking_status != BOOKING_ACTIVE:
        logger.warning("booking %s: late payment %s on %s/%s", booking_id, payment_id, booking.payment_status, booking.booking_status)
        log_audit(db, actor_user_id="razorpay", action="late_payment_rejected", entity_type="booking", entity_id=booking.id,
                  details={"paymentId": payment_id, "paymentStatus": booking.payment_status, "bookingStatus": booking.booking_status})
        db.commit()
        raise AlreadyFinalized("Booking is no longer awaiting payment")

    show = load_show_for_update(db, booking.show_id)
    booked = set(show.booked_seats or [])
    clash = [s for s in booking.seats if s in booked]
    if clash:
        logger.error("booking %s: seats %s already sold at promotion", booking_id, clash)
        log_audit(db, actor_user_id="razorpay", action="promotion_conflict", entity_type="booking", entity_id=booking.id,
                  details={"paymentId": payment_id, "seats": clash})
        db.commit()
        raise SeatUnavailable(f"Seat {clash[0]} already booked")

    # Promotion: locked -> booked in one flush with the payment status.
    show.booked_seats = list(show.booked_seats or []) + list(booking.seats)
    drop_locks(show, booking.seats)

    booking.payment_status = PAYMENT_PAID
    booking.gateway_payment_id = payment_id
    booking.gateway_signature = signature
    booking.paid_at = now
    log_audit(db, actor_user_id="razorpay", action="payment_verified", entity_type="booking", entity_id=booking.id,
              details={"orderId": order_id, "paymentId": payment_id, "seats": booking.seats})
    db.commit()
    return booking, True


def verify_payment(db: Session, gateway: RazorpayClient, booking_id: str, order_id: str, payment_id: str, signature: str,
                   cache: Cache | None = None, now: datetime | None = None) -> dict:
    if not gateway.verify_signature(order_id, payment_id, signature):
        logger.warning("invalid payment signature for booking %s order %s", booking_id, order_id)
        log_audit(db, actor_user_id="razorpay", action="signature_rejected", entity_type="booking", entity_id=booking_id,
                  details={"reason": "signature_mismatch", "orderId": order_id, "paymentId": payment_id})
        db.commit()
        raise InvalidSignature()

    booking, promoted = _promote(db, booking_id, order_id, payment_id, signature, now or utcnow())
    invalidate(cache, [my_bookings_key(booking.user_id)])
    if not promoted:
        return {"message": "Already verified"}
    logger.info("booking %s paid, seats %s promoted", booking.id, ",".join(booking.seats))
    return {"message": "Payment verified & booking confirmed"}


@show_transaction
def _fail_payment(db: Session, booking_id: str, user_id: str | None) -> Booking | None:
    booking = load_booking_for_update(db, booking_id)
    if booking is None or (user_id is not None and booking.user_id != user_id):
        db.commit()
        return None
    if booking.payment_status != PAYMENT_PENDING:
        # Paid, or already failed by an earlier callback or the sweeper.
        logger.info("booking %s is %s, ignoring failure callback", booking_id, booking.payment_status)
        db.commit()
        return None

    booking.payment_status = PAYMENT_FAILED

    show = db.execute(
        select(Show).where(Show.id == booking.show_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    released = drop_booking_locks(show, booking) if show is not None else []
    log_audit(db, actor_user_id=booking.user_id, action="payment_failed", entity_type="booking", entity_id=booking.id,
              details={"released": [l["seatId"] for l in released]})
    db.commit()
    return booking


def payment_failed(db: Session, booking_id: str, user_id: str | None = None, cache: Cache | None = None) -> None:
    """Best-effort failure callback: unknown (or foreign) bookings are a silent no-op."""
    booking = _fail_payment(db, booking_id, user_id)
    if booking is not None:
        invalidate(cache, [my_bookings_key(booking.user_id)])
        logger.info("booking %s payment failed, locks released", booking.id)


def _show_summary(db: Session, show: Show | None) -> dict | None:
    if show is None:
        return None
    theatre = db.get(Theatre, show.theatre_id)
    return {
        "showId": show.id,
        "theatre": theatre.name if theatre else None,
        "screen": show.screen_number,
        "date": show.date_str,
        "time": show.start,
    }


def list_my_bookings(db: Session, user_id: str, cache: Cache | None = None) -> list[dict]:
    key = my_bookings_key(user_id)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    rows = (
        db.query(Booking)
        .filter(Booking.user_id == user_id, Booking.payment_status == PAYMENT_PAID)
        .order_by(Booking.created_at.desc())
        .all()
    )
    out = [
        {
            "bookingId": b.id,
            "bookingRef": b.booking_ref,
            "movieId": b.movie_id,
            "status": b.payment_status,
            "bookingStatus": b.booking_status,
            "seats": list(b.seats),
            "amount": b.amount,
            "show": _show_summary(db, db.get(Show, b.show_id)),
        }
        for b in rows
    ]
    if cache is not None:
        cache.set(key, out)
    return out


def get_ticket(db: Session, user_id: str, booking_id: str) -> dict:
    b = db.get(Booking, booking_id)
    if not b or b.user_id != user_id or b.payment_status != PAYMENT_PAID:
        raise BookingNotFound("Ticket not found")
    return {
        "bookingId": b.id,
        "bookingRef": b.booking_ref,
        "movieId": b.movie_id,
        "seats": list(b.seats),
        "amount": b.amount,
        "bookingStatus": b.booking_status,
        "show": _show_summary(db, db.get(Show, b.show_id)),
    }
