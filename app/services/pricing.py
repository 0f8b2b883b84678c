"""Seat pricing: a seat costs the price of its row ("C8" -> row "C")."""
import re
from typing import Iterable

from app.core.errors import InvalidSeat, InvalidBookingRequest

_SEAT_RE = re.compile(r"^([A-Za-z]+)(\d+)$")


def seat_row(seat_id: str) -> str:
    m = _SEAT_RE.match((seat_id or "").strip())
    if not m:
        raise InvalidSeat(f"Invalid seat {seat_id!r}")
    return m.group(1)


def _is_price(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_price_map(price_map: dict) -> dict:
    """Every row must carry a positive numeric price."""
    if not price_map:
        raise InvalidBookingRequest("Price map is required")
    for row, price in price_map.items():
        if not _is_price(price):
            raise InvalidBookingRequest(f"Invalid price for row {row}")
    return price_map


def compute_amount(show, seat_ids: Iterable[str]):
    """Sum of row prices for the given seats. A row without a price is rejected, never sold for free."""
    price_map = show.price_map or {}
    total = 0
    for seat in seat_ids:
        row = seat_row(seat)
        price = price_map.get(row)
        if not _is_price(price):
            raise InvalidSeat(f"No price configured for row {row} (seat {seat})")
        total += price
    return total
