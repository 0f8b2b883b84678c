"""Show inventory access: row-locked loads, lock expiry and per-show retries.

All read-check-write sequences on a Show go through ``load_show_for_update``
inside a function decorated with ``show_transaction``. The row lock serializes
writers on PostgreSQL; the ``Show.version`` check catches lost updates on
backends without SELECT ... FOR UPDATE and the whole unit is retried.
"""
import functools
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.errors import BookingError, ConcurrentUpdate, ShowNotFound
from app.models.show import Show

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def lock_timeout() -> timedelta:
    return timedelta(minutes=settings.SEAT_LOCK_TIMEOUT_MINUTES)


def load_show_for_update(db: Session, show_id: str) -> Show:
    show = db.execute(
        select(Show)
        .where(Show.id == show_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if show is None:
        raise ShowNotFound()
    return show


def show_transaction(fn):
    """Run ``fn(db, ...)`` as one unit: roll back on domain errors, retry on version conflicts."""
    @functools.wraps(fn)
    def wrapper(db: Session, *args, **kwargs):
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return fn(db, *args, **kwargs)
            except StaleDataError:
                db.rollback()
                logger.warning("%s: concurrent show update, attempt %d/%d", fn.__name__, attempt, MAX_ATTEMPTS)
            except BookingError:
                db.rollback()
                raise
        raise ConcurrentUpdate()
    return wrapper


def locked_at(lock: dict) -> datetime:
    ts = datetime.fromisoformat(lock["lockedAt"])
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def is_lock_active(lock: dict, now: datetime) -> bool:
    return locked_at(lock) >= now - lock_timeout()


def sweep_expired_locks(show: Show, now: datetime | None = None) -> list[dict]:
    """Drop lock records older than the lock timeout. Returns the removed records."""
    now = now or utcnow()
    kept, removed = [], []
    for lock in show.locked_seats or []:
        (kept if is_lock_active(lock, now) else removed).append(lock)
    if removed:
        show.locked_seats = kept
    return removed


def drop_locks(show: Show, seat_ids: Iterable[str], holder_user_id: str | None = None) -> list[dict]:
    """Remove locks on the given seats, optionally only those of one holder."""
    seats = set(seat_ids)
    kept, removed = [], []
    for lock in show.locked_seats or []:
        hit = lock["seatId"] in seats and (holder_user_id is None or lock["userId"] == holder_user_id)
        (removed if hit else kept).append(lock)
    if removed:
        show.locked_seats = kept
    return removed


def drop_booking_locks(show: Show, booking) -> list[dict]:
    """Remove the holds a pending booking was created from.

    Creation restamps the owner's locks with ``booking.created_at``; a later
    selection by the same user carries a newer timestamp and is left alone.
    """
    stamp = booking.created_at
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    seats = set(booking.seats)
    kept, removed = [], []
    for lock in show.locked_seats or []:
        hit = lock["seatId"] in seats and lock["userId"] == booking.user_id and locked_at(lock) == stamp
        (removed if hit else kept).append(lock)
    if removed:
        show.locked_seats = kept
    return removed
