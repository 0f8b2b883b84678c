from pydantic import BaseModel, Field
from typing import List, Optional

class LockedSeatOut(BaseModel):
    seatId: str
    userId: str
    lockedAt: str

class SeatMapOut(BaseModel):
    bookedSeats: List[str]
    lockedSeats: List[LockedSeatOut]

class LockSeatsRequest(BaseModel):
    seats: List[str] = Field(min_length=1)

class LockSeatsOut(BaseModel):
    message: str
    seats: List[str] = []
    lockedAt: Optional[str] = None

class ShowSummaryOut(BaseModel):
    showId: str
    time: str
    language: Optional[str] = None
    format: str = "2D"
    availableSeats: int

class TheatreShowsOut(BaseModel):
    theatreId: str
    theatreName: str
    shows: List[ShowSummaryOut]

class ShowDetailOut(BaseModel):
    showId: str
    movieId: int
    date: str
    time: str
    language: Optional[str] = None
    format: str = "2D"
    theatreName: str
    screenNumber: int
    seatLayout: dict
    priceMap: dict
