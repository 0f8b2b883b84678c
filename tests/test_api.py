from app.models.booking import Booking, PAYMENT_PAID


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_lock_requires_auth(client, show):
    r = client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1"]})
    assert r.status_code == 401
    r = client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1"]}, headers={"Authorization": "Bearer junk"})
    assert r.status_code == 401


def test_token_cookie_is_accepted(client, show, auth_headers):
    token = auth_headers("u1")["Authorization"].split()[1]
    client.cookies.set("token", token)
    r = client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1"]})
    assert r.status_code == 200


def test_show_listing_and_detail(client, show):
    r = client.get(f"/api/v1/shows/movie/{show.movie_id}", params={"city": "Bengaluru", "date": show.date_str})
    assert r.status_code == 200
    [theatre] = r.json()
    assert theatre["theatreName"] == "Marquee Central"
    assert theatre["shows"][0]["showId"] == show.id
    assert theatre["shows"][0]["availableSeats"] == 32

    assert client.get(f"/api/v1/shows/movie/{show.movie_id}", params={"city": "Pune", "date": show.date_str}).json() == []
    assert client.get(f"/api/v1/shows/movie/{show.movie_id}", params={"city": "Bengaluru", "date": "tomorrow"}).status_code == 400

    detail = client.get(f"/api/v1/shows/{show.id}").json()
    assert detail["priceMap"] == {"A": 200, "B": 200, "C": 250}
    assert detail["seatLayout"]["rows"][0]["row"] == "A"
    assert client.get("/api/v1/shows/missing").status_code == 404


def test_full_booking_flow(client, db, show, gateway, signer, auth_headers):
    h = auth_headers("u1")
    r = client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1", "A2"]}, headers=h)
    assert r.status_code == 200
    assert r.json()["message"] == "Seats locked successfully"
    assert r.json()["seats"] == ["A1", "A2"]

    seats = client.get(f"/api/v1/shows/{show.id}/seats").json()
    assert [l["seatId"] for l in seats["lockedSeats"]] == ["A1", "A2"]

    r = client.post("/api/v1/booking/create", json={"movieId": show.movie_id, "showId": show.id, "seats": ["A1", "A2"]}, headers=h)
    assert r.status_code == 200, r.text
    created = r.json()
    assert created["amount"] == 400
    assert created["key"] == "rzp_test_key"

    body = {
        "bookingId": created["bookingId"],
        "gatewayOrderId": created["orderId"],
        "gatewayPaymentId": "pay_1",
        "gatewaySignature": signer(created["orderId"], "pay_1"),
    }
    r = client.post("/api/v1/booking/verify", json=body, headers=h)
    assert r.json() == {"message": "Payment verified & booking confirmed"}
    r = client.post("/api/v1/booking/verify", json=body, headers=h)
    assert r.json() == {"message": "Already verified"}

    assert db.get(Booking, created["bookingId"]).payment_status == PAYMENT_PAID
    assert client.get(f"/api/v1/shows/{show.id}/seats").json() == {"bookedSeats": ["A1", "A2"], "lockedSeats": []}

    mine = client.get("/api/v1/booking/my", headers=h).json()
    assert [b["bookingId"] for b in mine] == [created["bookingId"]]
    ticket = client.get(f"/api/v1/booking/{created['bookingId']}", headers=h).json()
    assert ticket["seats"] == ["A1", "A2"]
    assert client.get(f"/api/v1/booking/{created['bookingId']}", headers=auth_headers("u2")).status_code == 404

    r = client.post(f"/api/v1/booking/{created['bookingId']}/cancel", headers=h)
    assert r.status_code == 200
    assert r.json()["paymentStatus"] == "refunded"
    assert client.get("/api/v1/booking/my", headers=h).json() == []


def test_errors_carry_code(client, show, auth_headers):
    client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1"]}, headers=auth_headers("u1"))
    r = client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1"]}, headers=auth_headers("u2"))
    assert r.status_code == 409
    assert r.json() == {"detail": "Seat A1 temporarily locked", "code": "SeatLockedByOther"}

    r = client.post("/api/v1/shows/missing/lock-seats", json={"seats": ["A1"]}, headers=auth_headers("u1"))
    assert r.status_code == 404
    assert r.json()["code"] == "ShowNotFound"

    r = client.post("/api/v1/booking/create", json={"showId": show.id, "seats": ["B1"]}, headers=auth_headers("u1"))
    assert r.status_code == 409
    assert r.json()["code"] == "LockExpiredOrMissing"


def test_empty_seat_list_is_rejected(client, show, auth_headers):
    r = client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": []}, headers=auth_headers("u1"))
    assert r.status_code == 422


def test_gateway_outage_returns_500(client, show, gateway, auth_headers):
    h = auth_headers("u1")
    client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1"]}, headers=h)
    gateway.fail = True
    r = client.post("/api/v1/booking/create", json={"showId": show.id, "seats": ["A1"]}, headers=h)
    assert r.status_code == 500
    assert r.json() == {"detail": "Booking failed", "code": "PaymentGatewayError"}


def test_payment_failed_endpoint(client, show, auth_headers):
    h = auth_headers("u1")
    client.post(f"/api/v1/shows/{show.id}/lock-seats", json={"seats": ["A1"]}, headers=h)
    created = client.post("/api/v1/booking/create", json={"showId": show.id, "seats": ["A1"]}, headers=h).json()
    r = client.post("/api/v1/booking/failed", json={"bookingId": created["bookingId"]}, headers=h)
    assert r.json() == {"ok": True}
    assert client.get(f"/api/v1/shows/{show.id}/seats").json()["lockedSeats"] == []
    assert client.post("/api/v1/booking/failed", json={"bookingId": "nope"}, headers=h).json() == {"ok": True}


def test_verify_rejects_long_booking_id_with_400(client, auth_headers):
    body = {"bookingId": "x" * 64, "gatewayOrderId": "order_1", "gatewayPaymentId": "pay_1", "gatewaySignature": "bad"}
    r = client.post("/api/v1/booking/verify", json=body, headers=auth_headers("u1"))
    assert r.status_code == 400
    assert r.json()["code"] == "InvalidSignature"
    assert client.post("/api/v1/booking/verify", json=body).status_code == 401
