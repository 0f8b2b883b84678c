from sqlalchemy import String, Integer, Float, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

BOOKING_ACTIVE = "active"
BOOKING_CANCELLED = "cancelled"
BOOKING_EXPIRED = "expired"

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_ref: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    user_id: Mapped[str] = mapped_column(String(36), index=True)
    movie_id: Mapped[int] = mapped_column(Integer)
    show_id: Mapped[str] = mapped_column(String(36), index=True)

    seats: Mapped[list] = mapped_column(JSON)  # ordered, never rewritten
    amount: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    payment_status: Mapped[str] = mapped_column(String(20), default=PAYMENT_PENDING, index=True)  # pending, paid, failed, refunded
    booking_status: Mapped[str] = mapped_column(String(20), default=BOOKING_ACTIVE, index=True)   # active, cancelled, expired

    gateway_order_id: Mapped[str] = mapped_column(String(64), index=True)
    gateway_payment_id: Mapped[str] = mapped_column(String(64), nullable=True)
    gateway_signature: Mapped[str] = mapped_column(String(128), nullable=True)

    hold_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
