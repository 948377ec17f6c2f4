import os

os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["PASSWORD_BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("CLOUDINARY_URL", None)

from datetime import date

import mongomock
import pytest
from fastapi.testclient import TestClient

import availability
from database import create_document, ensure_indexes, get_db, parse_object_id
from main import app
from schemas import Room, User, UserRole
from security import hash_password, token_for_user

TODAY = date(2025, 5, 1)
PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr(availability, "today", lambda: TODAY)
    return TODAY


@pytest.fixture
def db():
    database = mongomock.MongoClient()["hotel-test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, email, role=UserRole.GUEST, name=None, is_active=True):
    user_id = create_document(
        db,
        "user",
        User(
            email=email,
            password_hash=hash_password(PASSWORD),
            name=name or email.split("@")[0].title(),
            role=role,
            is_active=is_active,
        ),
    )
    return db["user"].find_one({"_id": parse_object_id(user_id)})


def auth_headers(user):
    return {"Authorization": f"Bearer {token_for_user(user)}"}


@pytest.fixture
def admin(db):
    return make_user(db, "admin@hotel.com", UserRole.ADMIN, name="Admin User")


@pytest.fixture
def staff(db):
    return make_user(db, "staff@hotel.com", UserRole.STAFF, name="Staff User")


@pytest.fixture
def guest(db):
    return make_user(db, "ann@example.com", UserRole.GUEST, name="Ann Guest")


@pytest.fixture
def other_guest(db):
    return make_user(db, "bob@example.com", UserRole.GUEST, name="Bob Guest")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def staff_headers(staff):
    return auth_headers(staff)


@pytest.fixture
def guest_headers(guest):
    return auth_headers(guest)


@pytest.fixture
def deluxe_room(db):
    create_document(
        db,
        "room",
        Room(slug="deluxe-room", title="Deluxe Room", price=249, max_adults=4, max_children=2),
    )
    return db["room"].find_one({"slug": "deluxe-room"})
