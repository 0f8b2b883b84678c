from pydantic import BaseModel, Field
from typing import List, Optional

class BookingCreate(BaseModel):
    movieId: Optional[int] = None
    showId: str
    seats: List[str] = Field(min_length=1)

class BookingCreatedOut(BaseModel):
    bookingId: str
    orderId: str
    amount: float
    key: str

class PaymentVerifyRequest(BaseModel):
    bookingId: str
    gatewayOrderId: str
    gatewayPaymentId: str
    gatewaySignature: str

class PaymentFailedRequest(BaseModel):
    bookingId: str

class MessageOut(BaseModel):
    message: str

class CancelOut(BaseModel):
    message: str
    bookingId: str
    paymentStatus: str
    bookingStatus: str
    releasedSeats: List[str] = []
