"""
Password hashing, bearer tokens and the role gate.

The resolved caller is an ``Identity`` value returned by the dependencies
below and passed explicitly into each operation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from database import get_db, parse_object_id
from errors import Unauthenticated, Unauthorized
from schemas import UserRole
from settings import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.PASSWORD_BCRYPT_ROUNDS,
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

ALL_ROLES = (UserRole.GUEST, UserRole.STAFF, UserRole.ADMIN)
STAFF_ROLES = (UserRole.STAFF, UserRole.ADMIN)
ADMIN_ROLES = (UserRole.ADMIN,)


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    role: UserRole
    name: str = ""

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def create_access_token(user_id: str, email: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "email": email, "role": role, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def token_for_user(user: dict) -> str:
    return create_access_token(str(user["_id"]), user["email"], _role_value(user.get("role")))


def decode_access_token(token: str) -> dict:
    """Check signature and expiry; raises Unauthenticated on any failure."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid or expired token")
    if not payload.get("sub"):
        raise Unauthenticated("Invalid token payload")
    return payload


def resolve_identity(db: Database, token: str) -> Identity:
    """Verify the token and confirm the account still exists and is active.

    The role is read from the stored account, so a demotion applies to
    tokens issued before it.
    """
    payload = decode_access_token(token)
    user_id = parse_object_id(payload["sub"])
    user = db["user"].find_one({"_id": user_id}) if user_id else None
    if not user or not user.get("isActive", True):
        raise Unauthenticated("User not found or inactive")
    return Identity(
        id=str(user["_id"]),
        email=user["email"],
        role=UserRole(_role_value(user.get("role"))),
        name=user.get("name", ""),
    )


def _role_value(role) -> str:
    if isinstance(role, UserRole):
        return role.value
    return role or UserRole.GUEST.value


# ----- Dependencies -----

def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> Identity:
    if not token:
        raise Unauthenticated("No authentication token provided")
    return resolve_identity(db, token)


def get_optional_user(token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> Optional[Identity]:
    """Identity when a valid token is sent, None otherwise (never fails)."""
    if not token:
        return None
    try:
        return resolve_identity(db, token)
    except Unauthenticated:
        logger.debug("Ignoring invalid credentials on optional-auth route")
        return None


def require_roles(*roles: UserRole) -> Callable[..., Identity]:
    """Dependency factory: the caller must hold one of ``roles``."""
    allowed = tuple(roles)

    def checker(user: Identity = Depends(get_current_user)) -> Identity:
        if user.role not in allowed:
            raise Unauthorized(
                "Access denied. Required role: " + " or ".join(role.value for role in allowed)
            )
        return user

    return checker


require_guest = require_roles(*ALL_ROLES)
require_staff = require_roles(*STAFF_ROLES)
require_admin = require_roles(*ADMIN_ROLES)
