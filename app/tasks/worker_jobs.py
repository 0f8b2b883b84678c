import logging
from datetime import datetime, timedelta
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError
from app.core.cache import Cache, get_cache, invalidate, my_bookings_key
from app.core.config import settings
from app.core.errors import ShowNotFound
from app.db.session import SessionLocal
from app.models.booking import (
    Booking,
    BOOKING_ACTIVE,
    BOOKING_EXPIRED,
    PAYMENT_FAILED,
    PAYMENT_PAID,
    PAYMENT_PENDING,
)
from app.models.show import Show
from app.services.audit_service import log_audit
from app.services.booking_service import load_booking_for_update
from app.services.inventory import drop_booking_locks, load_show_for_update, sweep_expired_locks, utcnow

logger = logging.getLogger(__name__)


def _session(db: Session | None) -> tuple[Session, bool]:
    if db is not None:
        return db, False
    return SessionLocal(), True


def expire_bookings(db: Session | None = None, now: datetime | None = None, cache: Cache | None = None) -> dict:
    """Mark paid, active bookings as expired once showtime plus the grace period has passed.

    Seats stay booked; the booking just stops being viewable as a live ticket or cancellable.
    """
    db, owned = _session(db)
    now = now or utcnow()
    grace = timedelta(minutes=settings.SHOW_GRACE_MINUTES)
    expired = failed = 0
    try:
        try:
            ids = db.execute(
                select(Booking.id).where(
                    Booking.booking_status == BOOKING_ACTIVE,
                    Booking.payment_status == PAYMENT_PAID,
                )
            ).scalars().all()
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        for booking_id in ids:
            try:
                b = load_booking_for_update(db, booking_id)
                if b is None or b.booking_status != BOOKING_ACTIVE or b.payment_status != PAYMENT_PAID:
                    db.commit()
                    continue
                show = db.get(Show, b.show_id)
                if show is None:
                    db.commit()
                    continue
                if now > show.starts_at(settings.SHOW_TIMEZONE) + grace:
                    b.booking_status = BOOKING_EXPIRED
                    log_audit(db, actor_user_id="sweeper", action="booking_expired", entity_type="booking", entity_id=b.id,
                              details={"showId": show.id})
                    db.commit()
                    invalidate(cache or get_cache(), [my_bookings_key(b.user_id)])
                    expired += 1
                else:
                    db.commit()
            except Exception:
                db.rollback()
                failed += 1
                logger.exception("expire_bookings: booking %s failed", booking_id)
        if expired:
            logger.info("expire_bookings: %d bookings expired", expired)
        return {"expired": expired, "failed": failed}
    finally:
        if owned:
            db.close()


def expire_pending_bookings(db: Session | None = None, now: datetime | None = None, cache: Cache | None = None) -> dict:
    """Fail pending bookings whose payment window has lapsed and release their remaining holds."""
    db, owned = _session(db)
    now = now or utcnow()
    expired = failed = 0
    try:
        try:
            ids = db.execute(
                select(Booking.id).where(
                    Booking.booking_status == BOOKING_ACTIVE,
                    Booking.payment_status == PAYMENT_PENDING,
                    Booking.hold_expires_at != None,
                    Booking.hold_expires_at < now,
                )
            ).scalars().all()
        except ProgrammingError:
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        for booking_id in ids:
            try:
                # Re-check under the row lock; a verification may have won the race.
                b = load_booking_for_update(db, booking_id)
                if b is None or b.booking_status != BOOKING_ACTIVE or b.payment_status != PAYMENT_PENDING:
                    db.commit()
                    continue
                b.payment_status = PAYMENT_FAILED
                b.booking_status = BOOKING_EXPIRED
                released = []
                try:
                    show = load_show_for_update(db, b.show_id)
                    released = [l["seatId"] for l in drop_booking_locks(show, b)]
                except ShowNotFound:
                    pass
                log_audit(db, actor_user_id="sweeper", action="pending_booking_expired", entity_type="booking", entity_id=b.id,
                          details={"released": released})
                db.commit()
                invalidate(cache or get_cache(), [my_bookings_key(b.user_id)])
                expired += 1
            except Exception:
                db.rollback()
                failed += 1
                logger.exception("expire_pending_bookings: booking %s failed", booking_id)
        if expired:
            logger.info("expire_pending_bookings: %d stale pending bookings expired", expired)
        return {"expired": expired, "failed": failed}
    finally:
        if owned:
            db.close()


def sweep_seat_locks(db: Session | None = None, now: datetime | None = None) -> dict:
    """Scheduled counterpart of the read-path lock sweep, for shows nobody is looking at."""
    db, owned = _session(db)
    now = now or utcnow()
    since = (now.date() - timedelta(days=1)).isoformat()
    shows = released = failed = 0
    try:
        try:
            ids = db.execute(select(Show.id).where(Show.date_str >= since)).scalars().all()
        except ProgrammingError:
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        for show_id in ids:
            try:
                show = load_show_for_update(db, show_id)
                removed = sweep_expired_locks(show, now)
                db.commit()
                if removed:
                    shows += 1
                    released += len(removed)
            except Exception:
                db.rollback()
                failed += 1
                logger.exception("sweep_seat_locks: show %s failed", show_id)
        return {"shows": shows, "locksReleased": released, "failed": failed}
    finally:
        if owned:
            db.close()
