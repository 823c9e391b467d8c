"""
Authentication and authorization.

Credentials are bcrypt hashes in the "users" collection. A successful login
issues a signed JWT carrying the user's id, email and role; protected routes
depend on `require_auth`, and superAdmin-only routes on `require_super_admin`,
which itself depends on `require_auth`.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends, Header
from pydantic import BaseModel

from config import Settings, get_app_settings
from database import MongoStore
from errors import DuplicateUser, Forbidden, InvalidCredentials, Unauthorized, UserExists, ValidationError
from schemas import Role

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72
MIN_SECRET_KEY_LENGTH = 32


class Identity(BaseModel):
    id: str
    email: str
    role: Role


# ---------------------- Helpers ----------------------

def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def hash_password(password: str) -> str:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_token(user: Dict[str, Any], settings: Settings) -> str:
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not configured")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user["_id"]),
        "email": user["email"],
        "role": Role(user["role"]).value,
        "iat": now,
        "exp": now + timedelta(hours=settings.TOKEN_TTL_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, settings: Settings) -> Identity:
    if not settings.SECRET_KEY:
        # Never verify against an empty HMAC key
        raise Unauthorized("Unauthorized: invalid or expired token")
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
        return Identity(id=payload["sub"], email=payload["email"], role=Role(payload["role"]))
    except (jwt.PyJWTError, KeyError, ValueError) as e:
        logger.debug("Rejected session token: %s", e)
        raise Unauthorized("Unauthorized: invalid or expired token")


# ---------------------- Operations ----------------------

def login(store: MongoStore, settings: Settings, email: str, password: str) -> Dict[str, Any]:
    normalized = normalize_email(email)
    user = store.find_user_by_email(normalized) if normalized else None
    if not user or not check_password(password or "", user.get("password_hash", "")):
        logger.warning("Failed login for %s", normalized or "<blank>")
        raise InvalidCredentials()
    token = create_token(user, settings)
    logger.info("Login succeeded for %s", normalized)
    return {"token": token, "user": {"email": user["email"], "role": Role(user["role"]).value}}


def create_user(store: MongoStore, email: Optional[str], password: Optional[str]) -> str:
    normalized = normalize_email(email)
    if not normalized or not password:
        raise ValidationError("Email and password are required")
    if store.find_user_by_email(normalized):
        raise UserExists()
    # New accounts are always plain admins; only the seed creates a superAdmin.
    inserted_id = store.insert_user(normalized, hash_password(password), Role.ADMIN)
    logger.info("Created admin user %s", normalized)
    return inserted_id


def seed_super_admin(store: MongoStore, settings: Settings) -> Optional[str]:
    email = normalize_email(settings.ADMIN_EMAIL)
    if not email or not settings.ADMIN_PASSWORD:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping superAdmin seed")
        return None
    if store.find_user_by_email(email):
        logger.info("superAdmin %s already present", email)
        return None
    try:
        password_hash = hash_password(settings.ADMIN_PASSWORD)
    except ValidationError as e:
        logger.error("Skipping superAdmin seed for %s: %s", email, e.message)
        return None
    try:
        inserted_id = store.insert_user(email, password_hash, Role.SUPER_ADMIN)
    except DuplicateUser:
        # Another process seeded between the check and the insert
        return None
    logger.info("Seeded superAdmin %s", email)
    return inserted_id


# ---------------------- Dependencies ----------------------

def require_auth(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> Identity:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthorized("Unauthorized: missing token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise Unauthorized("Unauthorized: missing token")
    return decode_token(token, settings)


def require_super_admin(identity: Identity = Depends(require_auth)) -> Identity:
    if identity.role is not Role.SUPER_ADMIN:
        raise Forbidden()
    return identity


def check_secret_key(settings: Settings) -> None:
    if len(settings.SECRET_KEY or "") < MIN_SECRET_KEY_LENGTH:
        raise RuntimeError(f"SECRET_KEY must be at least {MIN_SECRET_KEY_LENGTH} characters")
