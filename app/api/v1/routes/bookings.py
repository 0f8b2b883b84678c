from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_current_user_id, get_gateway
from app.core.cache import Cache, get_cache
from app.db.session import get_db
from app.schemas.booking import (
    BookingCreate,
    BookingCreatedOut,
    CancelOut,
    MessageOut,
    PaymentFailedRequest,
    PaymentVerifyRequest,
)
from app.services.booking_service import create_booking, get_ticket, list_my_bookings, payment_failed, verify_payment
from app.services.cancellation_service import cancel_booking
from app.services.razorpay_client import RazorpayClient

router = APIRouter(tags=["bookings"])


@router.post("/booking/create", response_model=BookingCreatedOut)
def create(body: BookingCreate, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id),
           gateway: RazorpayClient = Depends(get_gateway), cache: Cache = Depends(get_cache)):
    return create_booking(db, gateway, user_id, body.showId, body.seats, movie_id=body.movieId, cache=cache)


@router.post("/booking/verify", response_model=MessageOut, dependencies=[Depends(get_current_user_id)])
def verify(body: PaymentVerifyRequest, db: Session = Depends(get_db),
           gateway: RazorpayClient = Depends(get_gateway), cache: Cache = Depends(get_cache)):
    # Trust comes from the gateway signature, not from the caller.
    return verify_payment(db, gateway, body.bookingId, body.gatewayOrderId, body.gatewayPaymentId, body.gatewaySignature, cache=cache)


@router.post("/booking/failed")
def failed(body: PaymentFailedRequest, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id),
           cache: Cache = Depends(get_cache)):
    payment_failed(db, body.bookingId, user_id=user_id, cache=cache)
    return {"ok": True}


@router.get("/booking/my")
def my_bookings(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id), cache: Cache = Depends(get_cache)):
    return list_my_bookings(db, user_id, cache=cache)


@router.get("/booking/{booking_id}")
def ticket(booking_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return get_ticket(db, user_id, booking_id)


@router.post("/booking/{booking_id}/cancel", response_model=CancelOut)
def cancel(booking_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id),
           cache: Cache = Depends(get_cache)):
    return cancel_booking(db, user_id, booking_id, cache=cache)
