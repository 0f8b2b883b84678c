from sqlalchemy import String, DateTime, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class Theatre(Base):
    __tablename__ = "theatres"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    city: Mapped[str] = mapped_column(String(120), index=True)
    # [{"screenNumber": 1, "seatLayout": {"rows": [{"row": "A", "seats": 12, "price": 200}]}}]
    screens: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def screen(self, screen_number: int) -> dict | None:
        for s in self.screens or []:
            if s.get("screenNumber") == screen_number:
                return s
        return None

    @staticmethod
    def total_seats(screen: dict) -> int:
        rows = (screen.get("seatLayout") or {}).get("rows") or []
        return sum(int(r.get("seats") or 0) for r in rows)
