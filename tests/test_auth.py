import auth
from conftest import PASSWORD, make_user
from security import create_access_token


def register(client, **overrides):
    body = {"email": "New.Guest@Example.com", "password": "hunter22", "name": "New Guest"}
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


def test_register_returns_session(client):
    response = register(client)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "new.guest@example.com"
    assert data["user"]["role"] == "guest"
    assert data["token"]


def test_self_registration_cannot_choose_role(client, db):
    response = register(client, role="admin")
    assert response.status_code == 201
    assert response.json()["data"]["user"]["role"] == "guest"
    assert db["user"].find_one({"email": "new.guest@example.com"})["role"] == "guest"


def test_register_validation(client):
    assert register(client, password="123").status_code == 400
    assert register(client, email="not-an-email").status_code == 400
    assert register(client).status_code == 201
    response = register(client, email="NEW.GUEST@example.com")
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_login(client, guest):
    response = client.post("/api/auth/login", json={"email": "ANN@example.com", "password": PASSWORD})
    assert response.status_code == 200
    token = response.json()["data"]["token"]

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["data"]["email"] == "ann@example.com"
    assert "passwordHash" not in profile.json()["data"]


def test_login_failures(client, db):
    make_user(db, "off@example.com", is_active=False)
    assert client.post("/api/auth/login", json={"email": "ann@example.com", "password": "x"}).status_code == 401
    response = client.post("/api/auth/login", json={"email": "off@example.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthenticated"


def test_bad_and_missing_tokens(client, guest):
    assert client.get("/api/auth/profile").status_code == 401
    assert client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_role_comes_from_stored_account(client, guest):
    # a token claiming admin does not grant admin to a guest account
    token = create_access_token(str(guest["_id"]), guest["email"], "admin")
    response = client.get("/api/auth/users", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403
    assert response.json()["error"] == "Unauthorized"


def test_deactivated_account_loses_access(client, guest, guest_headers, admin_headers):
    response = client.put(f"/api/auth/users/{guest['_id']}", json={"isActive": False}, headers=admin_headers)
    assert response.status_code == 200
    assert client.get("/api/auth/profile", headers=guest_headers).status_code == 401


def test_profile_and_password_change(client, guest, guest_headers):
    response = client.put("/api/auth/profile", json={"name": "Ann B", "phone": "555"}, headers=guest_headers)
    assert response.json()["data"]["name"] == "Ann B"

    response = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "wrong", "newPassword": "another1"},
        headers=guest_headers,
    )
    assert response.status_code == 401
    response = client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "another1"},
        headers=guest_headers,
    )
    assert response.status_code == 200
    login = client.post("/api/auth/login", json={"email": "ann@example.com", "password": "another1"})
    assert login.status_code == 200


def test_admin_manages_users(client, admin_headers, guest_headers):
    body = {"email": "desk@hotel.com", "password": "desk123", "name": "Front Desk", "role": "staff"}
    assert client.post("/api/auth/users", json=body, headers=guest_headers).status_code == 403

    response = client.post("/api/auth/users", json=body, headers=admin_headers)
    assert response.status_code == 201
    user = response.json()["data"]
    assert user["role"] == "staff"
    assert "passwordHash" not in user

    response = client.put(f"/api/auth/users/{user['id']}", json={"role": "admin"}, headers=admin_headers)
    assert response.json()["data"]["role"] == "admin"

    users = client.get("/api/auth/users", headers=admin_headers).json()
    assert users["count"] == 3
    assert all("passwordHash" not in u for u in users["data"])


def test_google_sign_in_links_existing_account(client, guest, monkeypatch, db):
    monkeypatch.setattr(
        auth,
        "verify_google_id_token",
        lambda token: {"sub": "g-123", "email": "ann@example.com", "name": "Ann", "picture": "a.png"},
    )
    response = client.post("/api/auth/google", json={"credential": "token"})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["id"] == str(guest["_id"])
    assert db["user"].find_one({"_id": guest["_id"]})["googleId"] == "g-123"


def test_google_sign_in_creates_guest(client, monkeypatch, db):
    monkeypatch.setattr(
        auth, "verify_google_id_token", lambda token: {"sub": "g-9", "email": "Zed@Example.com", "name": "Zed"}
    )
    response = client.post("/api/auth/google", json={"idToken": "token"})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["role"] == "guest"
    assert db["user"].count_documents({"googleId": "g-9", "email": "zed@example.com"}) == 1


def test_google_sign_in_without_picture_keeps_avatar(client, guest, monkeypatch, db):
    db["user"].update_one({"_id": guest["_id"]}, {"$set": {"avatar": "me.png"}})
    monkeypatch.setattr(
        auth, "verify_google_id_token", lambda token: {"sub": "g-77", "email": "ann@example.com", "name": "Ann"}
    )
    response = client.post("/api/auth/google", json={"credential": "token"})
    assert response.status_code == 200
    stored = db["user"].find_one({"_id": guest["_id"]})
    assert stored["googleId"] == "g-77"
    assert stored["avatar"] == "me.png"
