import uuid
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from app.db.session import SessionLocal
from app.core.config import settings
from app.models.show import Show
from app.models.theatre import Theatre
from app.services.pricing import validate_price_map

DEMO_SCREENS = [
    {
        "screenNumber": 1,
        "seatLayout": {"rows": [
            {"row": "A", "seats": 10, "price": 200},
            {"row": "B", "seats": 10, "price": 200},
            {"row": "C", "seats": 12, "price": 250},
        ]},
    },
]


def price_map_for(screen: dict) -> dict:
    return {r["row"]: r["price"] for r in screen["seatLayout"]["rows"]}


def ensure_theatre(db: Session, name: str, city: str, screens: list[dict]) -> Theatre:
    t = db.query(Theatre).filter(Theatre.name == name, Theatre.city == city).first()
    if t:
        return t
    t = Theatre(id=str(uuid.uuid4()), name=name, city=city, screens=screens, is_active=True)
    db.add(t)
    db.commit()
    return t


def ensure_show(db: Session, theatre: Theatre, screen_number: int, movie_id: int, date_str: str, start: str,
                price_map: dict, language: str = "English", format: str = "2D") -> Show | None:
    exists = db.query(Show).filter_by(theatre_id=theatre.id, screen_number=screen_number, date_str=date_str, start=start).first()
    if exists:
        return None
    show = Show(
        id=str(uuid.uuid4()),
        movie_id=movie_id,
        theatre_id=theatre.id,
        screen_number=screen_number,
        date_str=date_str,
        start=start,
        language=language,
        format=format,
        price_map=validate_price_map(dict(price_map)),
        booked_seats=[],
        locked_seats=[],
    )
    db.add(show)
    db.commit()
    return show


def run(db=None, movie_id: int = 550, days: int = 3, times: tuple[str, ...] = ("13:00", "19:30")):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM shows LIMIT 1"))
        except ProgrammingError:
            db.rollback()
            print("[seed] shows table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        theatre = ensure_theatre(db, "Marquee Central", "Bengaluru", DEMO_SCREENS)
        screen = theatre.screen(1)
        today = datetime.now(ZoneInfo(settings.SHOW_TIMEZONE)).date()
        created = 0
        for i in range(days):
            d = (today + timedelta(days=i)).isoformat()
            for t in times:
                if ensure_show(db, theatre, 1, movie_id, d, t, price_map_for(screen)):
                    created += 1
        print(f"[seed] {created} shows created")
    finally:
        db.close()


if __name__ == "__main__":
    run()
