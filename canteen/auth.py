import hmac
import logging
import secrets
import time
from typing import Optional

import jwt
from fastapi import Header
from passlib.context import CryptContext

from . import config
from .errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
ADMIN_HEADER = "X-Admin-Key"


def generate_pin() -> str:
    """Six-digit verification code, uniform over 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


def generate_token(user_id, expires_delta: Optional[int] = None) -> str:
    settings = config.get_settings()
    now = int(time.time())
    if expires_delta is None:
        expires_delta = settings.token_ttl_days * 24 * 60 * 60
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def verify_token(token: Optional[str]) -> Optional[str]:
    """Return the user id embedded in ``token``, or None for malformed, forged or expired tokens."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, config.get_settings().jwt_secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


def hash_pin(pin: str) -> str:
    return pwd_context.hash(pin)


def check_pin(pin: str, stored: Optional[str], hashed: bool) -> bool:
    if not stored or not pin:
        return False
    if hashed:
        try:
            return pwd_context.verify(pin, stored)
        except ValueError:
            # stored value is not a recognised hash (e.g. written before HASH_PINS was enabled)
            return False
    return hmac.compare_digest(pin.encode(), stored.encode())


# -------------------- FastAPI dependencies --------------------

async def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """Privileged check shared by every admin route."""
    expected = config.get_settings().admin_key
    if not expected or not x_admin_key or not hmac.compare_digest(x_admin_key.encode(), expected.encode()):
        logger.warning("rejected privileged request: missing or wrong %s", ADMIN_HEADER)
        raise Forbidden("Admin access required")


async def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> int:
    parts = (authorization or "").split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized("No token provided")
    user_id = verify_token(parts[1].strip())
    if user_id is None or not user_id.isdigit():
        raise Unauthorized("Invalid or expired token")
    return int(user_id)
