from datetime import timedelta

import pytest

import auth
from auth import ADMIN_ROLE, USER_ROLE, create_access_token
from errors import DuplicateKeyError

SIGNUP = {
    "name": "Kiran",
    "email": "Kiran@Gmail.com",
    "phone": "9876501234",
    "password": "secret12",
    "confirmPassword": "secret12",
}


def test_user_signup_login_and_info(client, db):
    res = client.post("/api/users/signup", json=SIGNUP)
    assert res.status_code == 201
    body = res.json()
    assert body["user"]["email"] == "kiran@gmail.com"
    assert "password" not in body["user"]
    stored = db["user"].find_one({"email": "kiran@gmail.com"})
    assert stored["password"] != "secret12"

    res = client.post("/api/users/login", json={"email": "kiran@gmail.com", "password": "secret12"})
    assert res.status_code == 200
    token = res.json()["token"]

    info = client.get("/api/users/get-user-info", headers={"Authorization": f"Bearer {token}"})
    assert info.status_code == 200
    assert info.json()["user"]["name"] == "Kiran"

    assert client.post("/api/users/logout", headers={"Authorization": f"Bearer {token}"}).status_code == 200


def test_signup_rules(client):
    client.post("/api/users/signup", json=SIGNUP)
    res = client.post("/api/users/signup", json=SIGNUP)
    assert res.status_code == 400
    assert res.json()["message"] == "email must be unique"

    res = client.post("/api/users/signup", json={**SIGNUP, "email": "other@gmail.com", "confirmPassword": "nope12"})
    assert res.status_code == 400

    res = client.post("/api/users/signup", json={**SIGNUP, "email": "other@gmail.com", "phone": "12345"})
    assert res.status_code == 400
    assert "phone" in res.json()["errors"]


def test_bad_credentials(client):
    client.post("/api/users/signup", json=SIGNUP)
    res = client.post("/api/users/login", json={"email": "kiran@gmail.com", "password": "wrong"})
    assert res.status_code == 401
    res = client.post("/api/users/login", json={"email": "nobody@gmail.com", "password": "secret12"})
    assert res.status_code == 401


def test_token_problems(client, db):
    assert client.get("/api/users/get-user-info").json()["message"] == "Unauthorized - No token provided"

    res = client.get("/api/users/get-user-info", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["message"] == "Unauthorized - Invalid token"

    user_id = db["user"].insert_one({"name": "X", "email": "x@gmail.com", "phone": "9999999999", "password": "x"}).inserted_id
    expired = create_access_token({"sub": str(user_id), "role": USER_ROLE}, timedelta(minutes=-5))
    res = client.get("/api/users/get-user-info", headers={"Authorization": f"Bearer {expired}"})
    assert res.status_code == 401
    assert res.json()["message"] == "Unauthorized - Token expired"

    admin_token = create_access_token({"sub": str(user_id), "role": ADMIN_ROLE})
    res = client.get("/api/users/get-user-info", headers={"Authorization": f"Bearer {admin_token}"})
    assert res.status_code == 403


def test_forget_password(client):
    client.post("/api/users/signup", json=SIGNUP)
    res = client.post(
        "/api/users/forget-password",
        json={"email": "kiran@gmail.com", "newPassword": "newpass1", "confirmPassword": "newpass1"},
    )
    assert res.status_code == 200
    assert client.post("/api/users/login", json={"email": "kiran@gmail.com", "password": "newpass1"}).status_code == 200

    res = client.post(
        "/api/users/forget-password",
        json={"email": "ghost@gmail.com", "newPassword": "newpass1", "confirmPassword": "newpass1"},
    )
    assert res.status_code == 404


def test_admin_signup_login_and_user_management(client):
    res = client.post("/api/admin/signup", json={"name": "Owner", "email": "boss@gmail.com", "password": "adminpw"})
    assert res.status_code == 201
    assert client.post("/api/admin/signup", json={"email": "boss@gmail.com", "password": "adminpw"}).status_code == 400

    res = client.post("/api/admin/login", json={"email": "boss@gmail.com", "password": "adminpw"})
    assert res.status_code == 200
    body = res.json()
    assert body["name"] == "Owner"
    headers = {"Authorization": f"Bearer {body['jwtToken']}"}

    user = client.post("/api/users/signup", json=SIGNUP).json()["user"]
    users = client.get("/api/users/get-all-users", headers=headers).json()["users"]
    assert [u["email"] for u in users] == ["kiran@gmail.com"]
    assert "password" not in users[0]

    assert client.delete(f"/api/users/{user['id']}", headers=headers).status_code == 200
    assert client.delete(f"/api/users/{user['id']}", headers=headers).status_code == 404

    assert client.post("/api/admin/login", json={"email": "boss@gmail.com", "password": "nope"}).status_code == 401


class UnseenCollection:
    """Hides existing rows from find_one, as when another signup lands between check and insert."""

    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def find_one(self, *args, **kwargs):
        return None


class UnseenDB:
    def __init__(self, inner):
        self.inner = inner

    def __getitem__(self, name):
        return UnseenCollection(self.inner[name])


@pytest.mark.parametrize(
    "signup,body",
    [
        (auth.signup_user, auth.UserSignup(**SIGNUP)),
        (auth.signup_admin, auth.AdminSignup(email="kiran@gmail.com", password="adminpw")),
    ],
)
def test_concurrent_signup_with_same_email(db, signup, body):
    signup(db, body)
    with pytest.raises(DuplicateKeyError) as exc:
        signup(UnseenDB(db), body)
    assert exc.value.status_code == 400
    assert exc.value.errors == {"email": "email must be unique"}
