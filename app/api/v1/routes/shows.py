from datetime import date as date_cls, datetime
from zoneinfo import ZoneInfo
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.api.deps import get_current_user_id
from app.core.config import settings
from app.db.session import get_db
from app.models.show import Show
from app.models.theatre import Theatre
from app.schemas.show import LockSeatsOut, LockSeatsRequest, SeatMapOut, ShowDetailOut, TheatreShowsOut
from app.services.inventory import is_lock_active, utcnow
from app.services.lock_service import get_seat_map, lock_seats

router = APIRouter(tags=["shows"])


@router.get("/shows/movie/{movie_id}", response_model=list[TheatreShowsOut])
def shows_by_movie(movie_id: int, city: str, date: str | None = None, db: Session = Depends(get_db)):
    """Shows of a movie in a city on a date, grouped by theatre. Today's shows that already started are hidden."""
    tz = ZoneInfo(settings.SHOW_TIMEZONE)
    local_now = datetime.now(tz)
    day = date or local_now.date().isoformat()
    try:
        date_cls.fromisoformat(day)
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")

    theatres = {t.id: t for t in db.query(Theatre).filter(Theatre.city == city, Theatre.is_active == True).all()}
    if not theatres:
        return []
    shows = (
        db.query(Show)
        .filter(Show.movie_id == movie_id, Show.theatre_id.in_(list(theatres)), Show.date_str == day)
        .order_by(Show.start)
        .all()
    )

    now = utcnow()
    grouped: dict[str, dict] = {}
    for show in shows:
        if show.starts_at(settings.SHOW_TIMEZONE) <= local_now:
            continue
        theatre = theatres[show.theatre_id]
        screen = theatre.screen(show.screen_number)
        if screen is None:
            continue
        active_locks = sum(1 for l in show.locked_seats or [] if is_lock_active(l, now))
        available = Theatre.total_seats(screen) - len(show.booked_seats or []) - active_locks
        entry = grouped.setdefault(theatre.id, {"theatreId": theatre.id, "theatreName": theatre.name, "shows": []})
        entry["shows"].append({
            "showId": show.id,
            "time": show.start,
            "language": show.language,
            "format": show.format,
            "availableSeats": max(available, 0),
        })
    return list(grouped.values())


@router.get("/shows/{show_id}/seats", response_model=SeatMapOut)
def show_seats(show_id: str, db: Session = Depends(get_db)):
    return get_seat_map(db, show_id)


@router.post("/shows/{show_id}/lock-seats", response_model=LockSeatsOut)
def lock_show_seats(show_id: str, body: LockSeatsRequest, db: Session = Depends(get_db),
                    user_id: str = Depends(get_current_user_id)):
    locks = lock_seats(db, show_id, user_id, body.seats)
    return LockSeatsOut(
        message="Seats locked successfully",
        seats=[l["seatId"] for l in locks],
        lockedAt=locks[0]["lockedAt"] if locks else None,
    )


@router.get("/shows/{show_id}", response_model=ShowDetailOut)
def get_show(show_id: str, db: Session = Depends(get_db)):
    show = db.get(Show, show_id)
    if not show:
        raise HTTPException(status_code=404, detail="Show not found")
    theatre = db.get(Theatre, show.theatre_id)
    screen = theatre.screen(show.screen_number) if theatre else None
    if not screen:
        raise HTTPException(status_code=500, detail="Screen layout not found for this show")
    return ShowDetailOut(
        showId=show.id,
        movieId=show.movie_id,
        date=show.date_str,
        time=show.start,
        language=show.language,
        format=show.format,
        theatreName=theatre.name,
        screenNumber=show.screen_number,
        seatLayout=screen.get("seatLayout") or {},
        priceMap=show.price_map or {},
    )
