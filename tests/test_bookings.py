import pytest
from bson import ObjectId

from tests.conftest import booking_payload


def test_create_booking_starts_pending(client, db, service_id):
    res = client.post("/api/book-service", json=booking_payload(service_id))
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["status"] == "pending"
    assert data["createdAt"]

    stored = db["booking"].find_one({"_id": ObjectId(data["bookingId"])})
    assert stored is not None
    assert stored["email"] == "asha@gmail.com"
    assert stored["serviceIds"] == [service_id]
    assert stored["statusChangedAt"] is None


def test_client_cannot_choose_initial_status(client, db, service_id):
    res = client.post("/api/book-service", json=booking_payload(service_id, status="completed"))
    assert res.status_code == 201
    assert res.json()["data"]["status"] == "pending"


def test_empty_service_list_is_rejected(client, db):
    res = client.post("/api/book-service", json=booking_payload(serviceIds=[]))
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["errors"]["serviceIds"] == "At least one service must be selected"
    assert db["booking"].count_documents({}) == 0


@pytest.mark.parametrize("phone", ["98765", "98765432101", "98765abcde", "+919876543210", ""])
def test_phone_must_be_ten_digits(client, phone):
    res = client.post("/api/book-service", json=booking_payload(phoneNumber=phone))
    assert res.status_code == 400
    assert "phoneNumber" in res.json()["errors"]


@pytest.mark.parametrize("pincode", ["060038", "56003", "5600381", "56OO38"])
def test_pincode_rules(client, pincode):
    res = client.post("/api/book-service", json=booking_payload(pincode=pincode))
    assert res.status_code == 400
    assert "pincode" in res.json()["errors"]


def test_short_address_and_bad_service_id(client):
    res = client.post("/api/book-service", json=booking_payload(address="Flat 2", serviceIds=["not-an-id"]))
    assert res.status_code == 400
    errors = res.json()["errors"]
    assert "address" in errors
    assert "serviceIds" in errors


def test_listing_requires_admin(client, user_headers):
    assert client.get("/api/bookings").status_code == 401
    assert client.get("/api/bookings", headers=user_headers).status_code == 403


def test_list_bookings_newest_first_with_services(client, db, admin_headers, service_id):
    first = client.post("/api/book-service", json=booking_payload(service_id, name="First")).json()["data"]
    second = client.post("/api/book-service", json=booking_payload(service_id, name="Second")).json()["data"]

    res = client.get("/api/bookings", headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 2
    assert [b["id"] for b in body["data"]] == [second["bookingId"], first["bookingId"]]
    services = body["data"][0]["services"]
    assert services == [{"id": str(service_id), "title": "Deep Cleaning", "price": 1499.0, "duration": None}]


def test_list_bookings_filters(client, admin_headers, service_id):
    other = ObjectId()
    kept = client.post("/api/book-service", json=booking_payload(service_id)).json()["data"]
    dropped = client.post("/api/book-service", json=booking_payload(other)).json()["data"]
    client.patch(f"/api/booking/{dropped['bookingId']}", json={"status": "cancelled"}, headers=admin_headers)

    by_service = client.get(f"/api/bookings?serviceId={service_id}", headers=admin_headers).json()["data"]
    assert [b["id"] for b in by_service] == [kept["bookingId"]]

    cancelled = client.get("/api/bookings?status=cancelled", headers=admin_headers).json()["data"]
    assert [b["id"] for b in cancelled] == [dropped["bookingId"]]
    # Unknown services are skipped in the join
    assert cancelled[0]["services"] == []

    assert client.get("/api/bookings?serviceId=nope", headers=admin_headers).status_code == 400


@pytest.mark.parametrize("status", ["confirmed", "done", "PENDING", ""])
def test_unlisted_status_is_rejected(client, admin_headers, service_id, status):
    booking = client.post("/api/book-service", json=booking_payload(service_id)).json()["data"]
    res = client.patch(f"/api/booking/{booking['bookingId']}", json={"status": status}, headers=admin_headers)
    assert res.status_code == 400
    assert "status" in res.json()["errors"]


def test_status_moves_freely_and_stamps_time(client, db, admin_headers, service_id):
    booking = client.post("/api/book-service", json=booking_payload(service_id)).json()["data"]
    url = f"/api/booking/{booking['bookingId']}"

    res = client.patch(url, json={"status": "cancelled"}, headers=admin_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "cancelled"
    assert data["statusChangedAt"]

    # A cancelled booking may be re-opened
    res = client.patch(url, json={"status": "pending"}, headers=admin_headers)
    assert res.status_code == 200
    assert db["booking"].find_one({"_id": ObjectId(booking["bookingId"])})["status"] == "pending"


def test_update_unknown_booking(client, admin_headers):
    res = client.patch(f"/api/booking/{ObjectId()}", json={"status": "completed"}, headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Booking not found"
    assert client.patch("/api/booking/123", json={"status": "completed"}, headers=admin_headers).status_code == 400


def test_delete_booking(client, db, admin_headers, service_id):
    booking = client.post("/api/book-service", json=booking_payload(service_id)).json()["data"]
    url = f"/api/booking/{booking['bookingId']}"
    assert client.delete(url, headers=admin_headers).status_code == 200
    assert db["booking"].count_documents({}) == 0
    assert client.delete(url, headers=admin_headers).status_code == 404
