from datetime import date

import pytest
from bson import ObjectId

import bookings
from conftest import auth_headers
from errors import Conflict

GUEST_INFO = {"name": "Ann Guest", "email": " Ann@Example.com ", "phone": "+30 555 0101"}


def booking_body(check_in, check_out, adults=2, children=0, room="deluxe-room"):
    return {
        "roomSlug": room,
        "checkIn": check_in,
        "checkOut": check_out,
        "adults": adults,
        "children": children,
        "guestInfo": GUEST_INFO,
    }


def book(client, headers, check_in, check_out, **kwargs):
    return client.post("/api/bookings", json=booking_body(check_in, check_out, **kwargs), headers=headers)


@pytest.fixture
def confirmed_booking(client, deluxe_room, guest_headers, staff_headers):
    response = book(client, guest_headers, "2025-06-01", "2025-06-05")
    assert response.status_code == 201
    booking_id = response.json()["data"]["booking"]["id"]
    response = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=staff_headers)
    assert response.status_code == 200
    return response.json()["data"]


def check(client, check_in, check_out, room="deluxe-room"):
    return client.post(
        "/api/bookings/check-availability", json={"roomSlug": room, "checkIn": check_in, "checkOut": check_out}
    )


def test_create_booking_quotes_and_records(client, deluxe_room, guest, guest_headers, db):
    response = book(client, guest_headers, "2025-06-06", "2025-06-09", adults=2, children=1)
    assert response.status_code == 201
    data = response.json()["data"]
    booking = data["booking"]
    assert booking["status"] == "pending"
    assert booking["paymentStatus"] == "pending"
    assert booking["nights"] == 3
    assert booking["totalPrice"] == 747
    assert booking["guestInfo"]["email"] == "ann@example.com"
    assert booking["userId"] == str(guest["_id"])
    assert booking["invoiceNumber"].startswith("INV-")
    assert data["summary"]["checkIn"] == "2025-06-06"
    assert data["summary"]["totalPrice"] == 747
    assert db["bookingnight"].count_documents({"bookingId": booking["id"]}) == 4


def test_additional_services_are_recorded(client, deluxe_room, guest_headers, db):
    body = booking_body("2025-06-06", "2025-06-09")
    body["additionalServices"] = [
        {"name": "Airport transfer", "price": 40},
        {"name": "Breakfast", "price": 15, "quantity": 3},
    ]
    response = client.post("/api/bookings", json=body, headers=guest_headers)
    assert response.status_code == 201
    booking = response.json()["data"]["booking"]
    assert booking["additionalServices"][0] == {"name": "Airport transfer", "price": 40, "quantity": 1}
    assert booking["totalPrice"] == 747
    stored = db["booking"].find_one({"invoiceNumber": booking["invoiceNumber"]})
    assert stored["additionalServices"][1]["quantity"] == 3

    body["additionalServices"] = [{"name": "Breakfast", "price": 15, "quantity": 0}]
    assert client.post("/api/bookings", json=body, headers=guest_headers).status_code == 400


def test_overlapping_ranges_are_unavailable(client, confirmed_booking):
    assert confirmed_booking["status"] == "confirmed"
    assert check(client, "2025-06-04", "2025-06-07").json()["data"]["available"] is False
    assert check(client, "2025-06-05", "2025-06-08").json()["data"]["available"] is False

    data = check(client, "2025-06-06", "2025-06-09").json()["data"]
    assert data["available"] is True
    assert data["nights"] == 3
    assert data["pricePerNight"] == 249
    assert data["totalPrice"] == 747


def test_overlapping_booking_is_rejected(client, confirmed_booking, guest_headers, db):
    response = book(client, guest_headers, "2025-06-04", "2025-06-07")
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"
    assert db["booking"].count_documents({}) == 1


def test_capacity_is_enforced_without_writing(client, deluxe_room, guest_headers, db):
    response = book(client, guest_headers, "2025-06-06", "2025-06-09", adults=5)
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidInput"
    assert db["booking"].count_documents({}) == 0
    assert db["bookingnight"].count_documents({}) == 0


@pytest.mark.parametrize(
    "check_in,check_out,error",
    [
        ("2025-06-05", "2025-06-05", "InvalidRange"),
        ("2025-06-09", "2025-06-06", "InvalidRange"),
        ("2025-04-20", "2025-05-03", "PastDate"),
    ],
)
def test_stay_dates_are_validated(client, deluxe_room, guest_headers, check_in, check_out, error):
    response = book(client, guest_headers, check_in, check_out)
    assert response.status_code == 400
    assert response.json()["error"] == error


def test_missing_adults_and_guest_info(client, deluxe_room, guest_headers):
    body = booking_body("2025-06-06", "2025-06-09")
    del body["adults"]
    assert client.post("/api/bookings", json=body, headers=guest_headers).status_code == 400

    body = booking_body("2025-06-06", "2025-06-09")
    del body["guestInfo"]
    assert client.post("/api/bookings", json=body, headers=guest_headers).status_code == 400


def test_unknown_and_unavailable_rooms(client, deluxe_room, guest_headers, db):
    assert book(client, guest_headers, "2025-06-06", "2025-06-09", room="nope").status_code == 404
    db["room"].update_one({"slug": "deluxe-room"}, {"$set": {"isAvailable": False}})
    response = book(client, guest_headers, "2025-06-06", "2025-06-09")
    assert response.status_code == 400
    assert response.json()["error"] == "Unavailable"


def test_booking_requires_sign_in(client, deluxe_room):
    response = client.post("/api/bookings", json=booking_body("2025-06-06", "2025-06-09"))
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthenticated"


def test_concurrent_writer_loses_on_night_claims(client, deluxe_room, guest_headers, monkeypatch, db):
    # both writers pass the read check; the unique night index decides
    monkeypatch.setattr(bookings, "find_conflicts", lambda *args, **kwargs: [])
    first = book(client, guest_headers, "2025-06-10", "2025-06-12")
    second = book(client, guest_headers, "2025-06-11", "2025-06-13")
    assert first.status_code == 201
    assert second.status_code == 409
    assert db["booking"].count_documents({"status": "pending"}) == 1
    # the loser left no partial claims behind
    assert db["bookingnight"].count_documents({}) == 3


def test_cancel_twice(client, deluxe_room, guest_headers, db):
    booking_id = book(client, guest_headers, "2025-06-06", "2025-06-09").json()["data"]["booking"]["id"]
    response = client.delete(f"/api/bookings/{booking_id}", headers=guest_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"
    assert db["bookingnight"].count_documents({}) == 0

    response = client.delete(f"/api/bookings/{booking_id}", headers=guest_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "AlreadyCancelled"


def test_cancelled_dates_can_be_rebooked(client, confirmed_booking, guest_headers):
    client.delete(f"/api/bookings/{confirmed_booking['id']}", headers=guest_headers)
    assert check(client, "2025-06-04", "2025-06-07").json()["data"]["available"] is True
    assert book(client, guest_headers, "2025-06-04", "2025-06-07").status_code == 201


def test_reactivating_a_cancelled_booking_needs_free_dates(client, confirmed_booking, guest_headers, staff_headers):
    booking_id = confirmed_booking["id"]
    client.delete(f"/api/bookings/{booking_id}", headers=guest_headers)
    assert book(client, guest_headers, "2025-06-03", "2025-06-04").status_code == 201

    response = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=staff_headers)
    assert response.status_code == 409


def test_failed_claim_keeps_nights_already_held(db):
    booking_id = ObjectId()
    claimed = bookings.claim_nights(db, booking_id, "deluxe-room", date(2025, 6, 1), date(2025, 6, 3))
    assert len(claimed) == 3
    with pytest.raises(Conflict):
        bookings.claim_nights(db, booking_id, "deluxe-room", date(2025, 6, 1), date(2025, 6, 3))
    assert db["bookingnight"].count_documents({"bookingId": str(booking_id)}) == 3


def test_losing_reactivation_leaves_winner_claims(
    client, confirmed_booking, guest_headers, staff_headers, monkeypatch, db
):
    booking_id = confirmed_booking["id"]
    client.delete(f"/api/bookings/{booking_id}", headers=guest_headers)
    stale = bookings.get_booking(db, booking_id)

    response = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=staff_headers)
    assert response.status_code == 200
    assert db["bookingnight"].count_documents({"bookingId": booking_id}) == 5

    # a second request that read the booking while it was still cancelled
    monkeypatch.setattr(bookings, "get_booking", lambda db, booking_id: dict(stale))
    with pytest.raises(Conflict):
        bookings.update_booking_status(db, booking_id, "checked-in")
    assert db["bookingnight"].count_documents({"bookingId": booking_id}) == 5
    assert db["booking"].find_one({"_id": stale["_id"]})["status"] == "confirmed"
    assert check(client, "2025-06-03", "2025-06-04").json()["data"]["available"] is False


def test_status_change_from_stale_read_is_refused(client, deluxe_room, guest_headers, monkeypatch, db):
    booking_id = book(client, guest_headers, "2025-06-06", "2025-06-09").json()["data"]["booking"]["id"]
    stale = bookings.get_booking(db, booking_id)
    assert client.delete(f"/api/bookings/{booking_id}", headers=guest_headers).status_code == 200

    monkeypatch.setattr(bookings, "get_booking", lambda db, booking_id: dict(stale))
    with pytest.raises(Conflict):
        bookings.update_booking_status(db, booking_id, "confirmed")
    assert db["booking"].find_one({"_id": stale["_id"]})["status"] == "cancelled"
    assert db["bookingnight"].count_documents({}) == 0


def test_stale_reactivation_releases_its_own_claims(client, confirmed_booking, guest_headers, monkeypatch, db):
    booking_id = confirmed_booking["id"]
    client.delete(f"/api/bookings/{booking_id}", headers=guest_headers)
    stale = bookings.get_booking(db, booking_id)
    # the booking moves on between the read and the status write
    db["booking"].update_one({"_id": stale["_id"]}, {"$set": {"status": "checked-out"}})

    monkeypatch.setattr(bookings, "get_booking", lambda db, booking_id: dict(stale))
    with pytest.raises(Conflict):
        bookings.update_booking_status(db, booking_id, "confirmed")
    assert db["bookingnight"].count_documents({}) == 0
    assert db["booking"].find_one({"_id": stale["_id"]})["status"] == "checked-out"


def test_other_guests_cannot_see_or_cancel(client, confirmed_booking, other_guest):
    headers = auth_headers(other_guest)
    booking_id = confirmed_booking["id"]
    assert client.get(f"/api/bookings/{booking_id}", headers=headers).status_code == 403
    assert client.delete(f"/api/bookings/{booking_id}", headers=headers).status_code == 403
    assert client.get("/api/bookings/mine", headers=headers).json()["count"] == 0


def test_staff_listing_and_filters(client, confirmed_booking, guest_headers, staff_headers):
    book(client, guest_headers, "2025-06-10", "2025-06-12")
    assert client.get("/api/bookings", headers=guest_headers).status_code == 403

    response = client.get("/api/bookings", headers=staff_headers)
    assert response.json()["count"] == 2
    response = client.get("/api/bookings", params={"status": "confirmed"}, headers=staff_headers)
    assert [b["id"] for b in response.json()["data"]] == [confirmed_booking["id"]]
    response = client.get("/api/bookings", params={"email": "ANN@example.com"}, headers=staff_headers)
    assert response.json()["count"] == 2


def test_status_and_payment_updates(client, confirmed_booking, staff_headers):
    booking_id = confirmed_booking["id"]
    response = client.patch(f"/api/bookings/{booking_id}/status", json={"status": "bogus"}, headers=staff_headers)
    assert response.status_code == 400

    response = client.patch(
        f"/api/bookings/{booking_id}/payment-status", json={"paymentStatus": "paid"}, headers=staff_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["paymentStatus"] == "paid"

    response = client.patch("/api/bookings/000000000000000000000000/status", json={"status": "confirmed"}, headers=staff_headers)
    assert response.status_code == 404
