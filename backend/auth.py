import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRY_HOURS
from database import get_db
from models.session import Session as UserSession

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""
    # Ensure it doesn't exceed 72 bytes to prevent bcrypt ValueError
    pw_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(pw_bytes, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    try:
        pw_bytes = plain_password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_token(data: dict) -> str:
    """Create a JWT token with an expiry claim and a unique JTI."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRY_HOURS)
    to_encode.update({"exp": expire, "jti": str(uuid.uuid4())})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict | None:
    """Decode and verify a JWT token. Returns the payload or None on failure."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def is_session_valid(db: Session, jti: str) -> bool:
    """A token is only good while its session row exists and is not revoked."""
    session = db.query(UserSession).filter_by(token_jti=jti).first()
    return session is not None and not session.is_revoked


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_token_payload(request: Request, db: Session = Depends(get_db)) -> dict:
    """
    FastAPI dependency - extracts the Bearer token from the Authorization
    header, verifies it against the session table and returns its claims.
    Raises HTTP 401 if the token is missing, invalid or revoked.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise _unauthorized("Missing or invalid Authorization header")

    payload = verify_token(auth_header.split(" ", 1)[1])
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    if payload.get("user_id") is None or payload.get("jti") is None:
        raise _unauthorized("Token payload missing required claims")

    if not is_session_valid(db, payload["jti"]):
        raise _unauthorized("Session has been revoked or logged out")

    return payload


async def get_current_user(payload: dict = Depends(get_token_payload)) -> int:
    """FastAPI dependency - the authenticated user's id."""
    return payload["user_id"]
