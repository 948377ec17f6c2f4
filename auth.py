"""
Accounts: registration, login, profile, admin user management and Google
sign-in.
"""
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, EmailStr, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, parse_object_id, utc_now
from errors import InvalidInput, NotFound, Unauthenticated
from responses import api_response
from schemas import CamelModel, User, UserRole
from security import (
    Identity,
    get_current_user,
    hash_password,
    require_admin,
    token_for_user,
    verify_password,
)
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ----- Models -----

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    role: Optional[str] = None  # ignored: self-registration is always guest


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


class CreateUserRequest(CamelModel):
    email: EmailStr
    password: str
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    role: UserRole


class UpdateUserRequest(CamelModel):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class GoogleLoginRequest(CamelModel):
    id_token: str = Field(..., validation_alias=AliasChoices("idToken", "id_token", "credential", "token"))


# ----- Helpers -----

def normalize_email(email: str) -> str:
    return email.strip().lower()


def public_user(user: dict) -> dict:
    """User document without its credential hash."""
    return {key: value for key, value in user.items() if key != "passwordHash"}


def get_user_by_email(db: Database, email: str) -> Optional[dict]:
    return db["user"].find_one({"email": normalize_email(email)})


def _check_password_length(password: str) -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise InvalidInput(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")


def _insert_user(db: Database, user: User) -> dict:
    if get_user_by_email(db, user.email):
        raise InvalidInput("User with this email already exists")
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise InvalidInput("User with this email already exists")
    return db["user"].find_one({"_id": parse_object_id(user_id)})


def _session(user: dict) -> dict:
    return {
        "user": {
            "id": str(user["_id"]),
            "email": user["email"],
            "name": user.get("name"),
            "role": user.get("role"),
            "avatar": user.get("avatar"),
        },
        "token": token_for_user(user),
    }


# ----- Operations -----

def register_user(db: Database, data: RegisterRequest) -> dict:
    _check_password_length(data.password)
    if data.role and data.role != UserRole.GUEST.value:
        logger.warning("Self-registration requested role %r; assigning guest", data.role)
    user = _insert_user(
        db,
        User(
            email=normalize_email(data.email),
            password_hash=hash_password(data.password),
            name=data.name.strip(),
            phone=data.phone,
            role=UserRole.GUEST,
        ),
    )
    logger.info("Registered user %s", user["_id"])
    return user


def authenticate_user(db: Database, email: str, password: str) -> dict:
    user = get_user_by_email(db, email)
    if not user:
        raise Unauthenticated("Invalid email or password")
    if not user.get("isActive", True):
        raise Unauthenticated("Account is inactive. Please contact support.")
    if not verify_password(password, user.get("passwordHash")):
        raise Unauthenticated("Invalid email or password")
    return user


def get_user(db: Database, user_id: str) -> dict:
    oid = parse_object_id(user_id)
    user = db["user"].find_one({"_id": oid}) if oid else None
    if not user:
        raise NotFound("User not found")
    return user


def update_profile(db: Database, identity: Identity, data: ProfileUpdate) -> dict:
    updates = {}
    if data.name:
        updates["name"] = data.name.strip()
    if data.phone is not None:
        updates["phone"] = data.phone.strip()
    updates["updatedAt"] = utc_now()
    user = db["user"].find_one_and_update(
        {"_id": parse_object_id(identity.id)},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFound("User not found")
    return user


def change_password(db: Database, identity: Identity, data: ChangePasswordRequest) -> None:
    _check_password_length(data.new_password)
    user = get_user(db, identity.id)
    if not verify_password(data.current_password, user.get("passwordHash")):
        raise Unauthenticated("Current password is incorrect")
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"passwordHash": hash_password(data.new_password), "updatedAt": utc_now()}},
    )


def create_user(db: Database, data: CreateUserRequest) -> dict:
    """Admin-initiated account creation; the only way to get staff/admin."""
    _check_password_length(data.password)
    return _insert_user(
        db,
        User(
            email=normalize_email(data.email),
            password_hash=hash_password(data.password),
            name=data.name.strip(),
            phone=data.phone,
            role=data.role,
        ),
    )


def list_users(db: Database) -> list:
    return [public_user(user) for user in db["user"].find().sort("createdAt", -1)]


def update_user(db: Database, user_id: str, data: UpdateUserRequest) -> dict:
    updates = {"updatedAt": utc_now()}
    if data.role is not None:
        updates["role"] = data.role
    if data.is_active is not None:
        updates["isActive"] = data.is_active
    oid = parse_object_id(user_id)
    user = db["user"].find_one_and_update(
        {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
    ) if oid else None
    if not user:
        raise NotFound("User not found")
    logger.info("Updated user %s: %s", user_id, sorted(k for k in updates if k != "updatedAt"))
    return user


def verify_google_id_token(id_token: str) -> dict:
    """Validate a Google ID token with Google's tokeninfo endpoint."""
    try:
        response = httpx.get(settings.GOOGLE_TOKENINFO_URL, params={"id_token": id_token}, timeout=10.0)
    except httpx.HTTPError as exc:
        logger.error("Google token verification failed: %s", exc)
        raise Unauthenticated("Could not verify Google credentials")
    if response.status_code != 200:
        raise Unauthenticated("Invalid Google token")
    claims = response.json()
    if settings.GOOGLE_CLIENT_ID and claims.get("aud") != settings.GOOGLE_CLIENT_ID:
        raise Unauthenticated("Google token was issued for another client")
    if not claims.get("sub") or not claims.get("email"):
        raise Unauthenticated("Google token is missing identity claims")
    if str(claims.get("email_verified", "true")).lower() != "true":
        raise Unauthenticated("Google email address is not verified")
    return claims


def exchange_external_identity(
    db: Database, google_id: str, email: str, name: str, avatar: Optional[str] = None
) -> dict:
    """Find the local account for a Google identity: by Google id, then by
    email (linking it), else a new guest account."""
    email = normalize_email(email)
    user = db["user"].find_one({"googleId": google_id})
    if not user:
        linked = {"googleId": google_id, "authProvider": "google", "updatedAt": utc_now()}
        # keep an existing avatar when Google sends no picture
        if avatar:
            linked["avatar"] = avatar
        user = db["user"].find_one_and_update(
            {"email": email},
            {"$set": linked},
            return_document=ReturnDocument.AFTER,
        )
    if not user:
        user = _insert_user(
            db,
            User(
                email=email,
                name=name or email.split("@")[0],
                role=UserRole.GUEST,
                auth_provider="google",
                google_id=google_id,
                avatar=avatar,
            ),
        )
        logger.info("Created user %s from Google sign-in", user["_id"])
    if not user.get("isActive", True):
        raise Unauthenticated("Account is inactive. Please contact support.")
    return user


# ----- Endpoints -----

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Database = Depends(get_db)):
    user = register_user(db, data)
    return api_response(_session(user), "User registered successfully")


@router.post("/login")
def login(data: LoginRequest, db: Database = Depends(get_db)):
    user = authenticate_user(db, data.email, data.password)
    return api_response(_session(user), "Login successful")


@router.post("/google")
def google_login(data: GoogleLoginRequest, db: Database = Depends(get_db)):
    claims = verify_google_id_token(data.id_token)
    user = exchange_external_identity(
        db, claims["sub"], claims["email"], claims.get("name", ""), claims.get("picture")
    )
    return api_response(_session(user), "Login successful")


@router.get("/profile")
def read_profile(identity: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    return api_response(public_user(get_user(db, identity.id)))


@router.put("/profile")
def write_profile(data: ProfileUpdate, identity: Identity = Depends(get_current_user), db: Database = Depends(get_db)):
    user = update_profile(db, identity, data)
    return api_response(public_user(user), "Profile updated successfully")


@router.post("/change-password")
def post_change_password(
    data: ChangePasswordRequest, identity: Identity = Depends(get_current_user), db: Database = Depends(get_db)
):
    change_password(db, identity, data)
    return api_response(message="Password changed successfully")


@router.post("/users", status_code=status.HTTP_201_CREATED)
def admin_create_user(data: CreateUserRequest, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    user = create_user(db, data)
    logger.info("Admin %s created %s account %s", admin.id, user["role"], user["_id"])
    return api_response(public_user(user), "User created successfully")


@router.get("/users")
def admin_list_users(admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    users = list_users(db)
    return api_response(users, count=len(users))


@router.put("/users/{user_id}")
def admin_update_user(
    user_id: str, data: UpdateUserRequest, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)
):
    user = update_user(db, user_id, data)
    return api_response(public_user(user), "User updated successfully")
