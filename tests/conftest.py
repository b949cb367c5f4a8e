import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import database
from auth import ADMIN_ROLE, USER_ROLE, create_access_token
from main import app
from payments import PaymentBridge, get_payment_bridge

RAZORPAY_KEY = "rzp_test_key"
RAZORPAY_SECRET = "rzp_test_secret"


class FakeOrders:
    def __init__(self):
        self.created = []
        self.fail = False

    def create(self, data):
        if self.fail:
            raise RuntimeError("gateway down")
        self.created.append(data)
        return {"id": "order_test123", "status": "created", **data}


class FakeRazorpay:
    def __init__(self):
        self.order = FakeOrders()


@pytest.fixture
def db():
    mongo = mongomock.MongoClient().get_database("fixease_test")
    database.ensure_indexes(mongo)
    return mongo


@pytest.fixture
def gateway():
    return FakeRazorpay()


@pytest.fixture
def client(db, gateway):
    app.dependency_overrides[database.get_db] = lambda: db
    app.dependency_overrides[get_payment_bridge] = lambda: PaymentBridge(RAZORPAY_KEY, RAZORPAY_SECRET, client=gateway)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(db):
    admin_id = db["admin"].insert_one({"name": "Owner", "email": "owner@gmail.com", "password": "x"}).inserted_id
    token = create_access_token({"sub": str(admin_id), "role": ADMIN_ROLE})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(db):
    user_id = db["user"].insert_one(
        {"name": "Ravi", "email": "ravi@gmail.com", "phone": "9876543210", "password": "x"}
    ).inserted_id
    token = create_access_token({"sub": str(user_id), "role": USER_ROLE})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def service_id(db):
    return db["service"].insert_one(
        {"title": "Deep Cleaning", "description": "Full home deep cleaning", "price": 1499.0,
         "category": "cleaning", "status": "active"}
    ).inserted_id


def booking_payload(*service_ids, **overrides):
    payload = {
        "name": "Asha Verma",
        "email": "Asha@Gmail.com",
        "phoneNumber": "9876543210",
        "address": "12 MG Road, Indiranagar",
        "pincode": "560038",
        "additionalMessage": "Ring twice",
        "serviceIds": [str(s) for s in service_ids] or [str(ObjectId())],
    }
    payload.update(overrides)
    return payload


def employee_payload(**overrides):
    payload = {
        "name": "Suresh Kumar",
        "phone": "9123456780",
        "aadhaar": "1234 5678 9012",
        "role": "Plumber",
        "salary": 10000,
    }
    payload.update(overrides)
    return payload
