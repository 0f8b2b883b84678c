import os

# Settings are read at import time; point them at test values first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_SANDBOX"] = "false"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["SHOW_TIMEZONE"] = "UTC"

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_gateway
from app.core.cache import MemoryCache, get_cache
from app.core.security import create_access_token
from app.db.session import Base, get_db
from app.main import app
from app.models.audit_log import AuditLog  # noqa: F401
from app.models.booking import Booking  # noqa: F401
from app.models.show import Show
from app.models.theatre import Theatre
from app.services.razorpay_client import RazorpayClient, RazorpayConfig, RazorpayError, payment_signature

KEY_SECRET = "rzp_test_secret"
PRICE_MAP = {"A": 200, "B": 200, "C": 250}
SCREENS = [{"screenNumber": 1, "seatLayout": {"rows": [
    {"row": "A", "seats": 10, "price": 200},
    {"row": "B", "seats": 10, "price": 200},
    {"row": "C", "seats": 12, "price": 250},
]}}]


class FakeGateway(RazorpayClient):
    """Records orders instead of calling Razorpay; signatures use the real scheme."""

    def __init__(self, fail: bool = False):
        super().__init__(RazorpayConfig(key_id="rzp_test_key", key_secret=KEY_SECRET))
        self.fail = fail
        self.orders: list[dict] = []

    def create_order(self, *, amount_minor: int, currency: str, receipt: str, notes: dict | None = None) -> dict:
        if self.fail:
            raise RazorpayError("Razorpay 503: unavailable")
        order = {"id": f"order_{len(self.orders) + 1:04d}", "amount": amount_minor, "currency": currency, "receipt": receipt}
        self.orders.append(order)
        return order


def sign(order_id: str, payment_id: str) -> str:
    return payment_signature(KEY_SECRET, order_id, payment_id)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def cache():
    return MemoryCache(default_ttl=600)


@pytest.fixture
def theatre(db):
    t = Theatre(id=str(uuid.uuid4()), name="Marquee Central", city="Bengaluru", screens=SCREENS, is_active=True)
    db.add(t)
    db.commit()
    return t


@pytest.fixture
def make_show(db, theatre):
    def _make(starts_at: datetime | None = None, price_map: dict | None = None, movie_id: int = 550, **fields) -> Show:
        starts_at = starts_at or (datetime.now(timezone.utc) + timedelta(days=2))
        show = Show(
            id=str(uuid.uuid4()),
            movie_id=movie_id,
            theatre_id=theatre.id,
            screen_number=1,
            date_str=starts_at.date().isoformat(),
            start=starts_at.strftime("%H:%M"),
            language="English",
            format="2D",
            price_map=dict(PRICE_MAP if price_map is None else price_map),
            booked_seats=fields.pop("booked_seats", []),
            locked_seats=fields.pop("locked_seats", []),
            **fields,
        )
        db.add(show)
        db.commit()
        return show
    return _make


@pytest.fixture
def show(make_show):
    return make_show()


@pytest.fixture
def client(db, gateway, cache):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_cache] = lambda: cache
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def signer():
    return sign


@pytest.fixture
def auth_headers():
    return auth
