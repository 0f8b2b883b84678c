import logging
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.errors import InvalidBookingRequest, SeatLockedByOther, SeatUnavailable
from app.services.inventory import (
    drop_locks,
    load_show_for_update,
    show_transaction,
    sweep_expired_locks,
    utcnow,
)

logger = logging.getLogger(__name__)


def normalize_seats(seat_ids: Iterable[str]) -> list[str]:
    """Strip and de-duplicate, keeping the caller's order."""
    seats: list[str] = []
    for s in seat_ids or []:
        s = (s or "").strip()
        if s and s not in seats:
            seats.append(s)
    if not seats:
        raise InvalidBookingRequest("No seats selected")
    return seats


@show_transaction
def get_seat_map(db: Session, show_id: str, now: datetime | None = None) -> dict:
    show = load_show_for_update(db, show_id)
    removed = sweep_expired_locks(show, now or utcnow())
    db.commit()
    if removed:
        logger.info("show %s: swept %d expired seat locks", show_id, len(removed))
    return {
        "bookedSeats": list(show.booked_seats or []),
        "lockedSeats": list(show.locked_seats or []),
    }


@show_transaction
def lock_seats(db: Session, show_id: str, user_id: str, seat_ids: Iterable[str], now: datetime | None = None) -> list[dict]:
    """Hold seats for a user. The new selection replaces any earlier hold of that user on this show."""
    seats = normalize_seats(seat_ids)
    now = now or utcnow()
    show = load_show_for_update(db, show_id)
    sweep_expired_locks(show, now)

    booked = set(show.booked_seats or [])
    taken = [s for s in seats if s in booked]
    if taken:
        raise SeatUnavailable(f"Seat {taken[0]} already booked")

    wanted = set(seats)
    held = [l["seatId"] for l in show.locked_seats or [] if l["seatId"] in wanted and l["userId"] != user_id]
    if held:
        raise SeatLockedByOther(f"Seat {held[0]} temporarily locked")

    kept = [l for l in show.locked_seats or [] if l["userId"] != user_id]
    fresh = [{"seatId": s, "userId": user_id, "lockedAt": now.isoformat()} for s in seats]
    show.locked_seats = kept + fresh
    db.commit()
    logger.info("show %s: user %s locked %s", show_id, user_id, ",".join(seats))
    return fresh


@show_transaction
def release_locks(db: Session, show_id: str, seat_ids: Iterable[str], holder_user_id: str | None = None) -> int:
    """Remove lock records for the seats. Unknown seats are ignored."""
    show = load_show_for_update(db, show_id)
    removed = drop_locks(show, seat_ids, holder_user_id)
    db.commit()
    return len(removed)
