import uuid
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConcurrentUpdate, SeatUnavailable
from app.db.session import Base
from app.models.show import Show
from app.services import inventory
from app.services.inventory import (
    drop_locks,
    is_lock_active,
    load_show_for_update,
    show_transaction,
    sweep_expired_locks,
    utcnow,
)


class RecordingSession:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


def test_show_transaction_retries_version_conflicts():
    calls = []

    @show_transaction
    def flaky(db):
        calls.append(1)
        if len(calls) < inventory.MAX_ATTEMPTS:
            raise StaleDataError("version mismatch")
        return "ok"

    db = RecordingSession()
    assert flaky(db) == "ok"
    assert len(calls) == inventory.MAX_ATTEMPTS
    assert db.rollbacks == inventory.MAX_ATTEMPTS - 1


def test_show_transaction_gives_up_with_concurrent_update():
    @show_transaction
    def always_stale(db):
        raise StaleDataError("version mismatch")

    db = RecordingSession()
    with pytest.raises(ConcurrentUpdate):
        always_stale(db)
    assert db.rollbacks == inventory.MAX_ATTEMPTS


def test_show_transaction_rolls_back_domain_errors_without_retry():
    calls = []

    @show_transaction
    def refuse(db):
        calls.append(1)
        raise SeatUnavailable()

    db = RecordingSession()
    with pytest.raises(SeatUnavailable):
        refuse(db)
    assert calls == [1]
    assert db.rollbacks == 1


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'inventory.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def stored_show_id(file_engine):
    Session = sessionmaker(bind=file_engine, expire_on_commit=False)
    with Session() as s:
        show = Show(
            id=str(uuid.uuid4()), movie_id=550, theatre_id="t1", screen_number=1,
            date_str="2030-01-01", start="19:30", price_map={"A": 200}, booked_seats=[], locked_seats=[],
        )
        s.add(show)
        s.commit()
        return show.id


def test_write_based_on_stale_read_is_detected(file_engine, stored_show_id):
    Session = sessionmaker(bind=file_engine, expire_on_commit=False)
    with Session() as a, Session() as b:
        show_a = a.get(Show, stored_show_id)
        show_b = b.get(Show, stored_show_id)

        show_b.booked_seats = ["A1"]
        b.commit()

        show_a.booked_seats = ["A1"]
        with pytest.raises(StaleDataError):
            a.commit()


def test_retry_reloads_fresh_state(file_engine, stored_show_id):
    Session = sessionmaker(bind=file_engine, expire_on_commit=False)
    attempts = []

    @show_transaction
    def book_a2(db, show_id):
        show = load_show_for_update(db, show_id)
        attempts.append(list(show.booked_seats))
        if len(attempts) == 1:
            # Another writer gets in between our read and our write.
            with Session() as other:
                rival = other.get(Show, show_id)
                rival.booked_seats = ["A1"]
                other.commit()
        show.booked_seats = list(show.booked_seats) + ["A2"]
        db.commit()

    with Session() as db:
        book_a2(db, stored_show_id)

    assert attempts == [[], ["A1"]]
    with Session() as check:
        show = check.get(Show, stored_show_id)
        assert show.booked_seats == ["A1", "A2"]
        assert show.version == 3


def test_lock_expiry_boundary():
    now = utcnow()
    fresh = {"seatId": "A1", "userId": "u1", "lockedAt": (now - timedelta(minutes=5)).isoformat()}
    stale = {"seatId": "A2", "userId": "u1", "lockedAt": (now - timedelta(minutes=5, seconds=1)).isoformat()}
    assert is_lock_active(fresh, now)
    assert not is_lock_active(stale, now)


def test_naive_lock_timestamps_are_read_as_utc():
    now = utcnow()
    naive = {"seatId": "A1", "userId": "u1", "lockedAt": now.replace(tzinfo=None).isoformat()}
    assert is_lock_active(naive, now)


def test_sweep_and_drop_return_removed_records():
    now = utcnow()
    show = Show(locked_seats=[
        {"seatId": "A1", "userId": "u1", "lockedAt": (now - timedelta(minutes=9)).isoformat()},
        {"seatId": "A2", "userId": "u1", "lockedAt": now.isoformat()},
        {"seatId": "A3", "userId": "u2", "lockedAt": now.isoformat()},
    ])
    removed = sweep_expired_locks(show, now)
    assert [l["seatId"] for l in removed] == ["A1"]
    assert [l["seatId"] for l in show.locked_seats] == ["A2", "A3"]

    removed = drop_locks(show, ["A2", "A3"], holder_user_id="u2")
    assert [l["seatId"] for l in removed] == ["A3"]
    assert [l["seatId"] for l in show.locked_seats] == ["A2"]
