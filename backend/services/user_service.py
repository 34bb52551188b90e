"""
user_service.py - Accounts, login sessions and login throttling
Every issued JWT gets a sessions row so logout can revoke it. Failed logins
are written to security_logs and counted per IP for rate limiting.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from auth import create_token, hash_password, verify_password, verify_token
from config import LOGIN_MAX_FAILURES, LOGIN_WINDOW_MINUTES
from errors import NotFound, RateLimited, Unauthorized, ValidationFailed
from models.security_log import SecurityLog
from models.session import Session as UserSession
from models.user import User

logger = logging.getLogger(__name__)


def _log_event(db: Session, event_type: str, ip: str, user_agent: str,
               user_id: int | None = None, details: str | None = None) -> None:
    db.add(SecurityLog(
        user_id=user_id,
        event_type=event_type,
        ip_address=ip,
        user_agent=user_agent,
        details=details,
    ))


def _open_session(db: Session, user: User, ip: str, user_agent: str) -> str:
    token = create_token({"user_id": user.id, "email": user.email})
    jti = verify_token(token)["jti"]
    db.add(UserSession(user_id=user.id, token_jti=jti, ip_address=ip, user_agent=user_agent))
    return token


def _email_taken(db: Session, email: str, exclude_user_id: int | None = None) -> bool:
    query = db.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


class UserService:
    @staticmethod
    def register(db: Session, name: str, email: str, password: str,
                 ip: str = "unknown", user_agent: str = "unknown") -> tuple[User, str]:
        email = email.strip().lower()
        if _email_taken(db, email):
            raise ValidationFailed.for_field("email", "The email has already been taken.")

        try:
            user = User(name=name, email=email, hashed_password=hash_password(password))
            db.add(user)
            db.flush()
            token = _open_session(db, user, ip, user_agent)
            _log_event(db, "register", ip, user_agent, user_id=user.id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        logger.info("User %s registered", user.id)
        return user, token

    @staticmethod
    def recent_failures(db: Session, ip: str) -> int:
        since = datetime.now(timezone.utc) - timedelta(minutes=LOGIN_WINDOW_MINUTES)
        return (
            db.query(SecurityLog)
            .filter(
                SecurityLog.event_type == "login_failed",
                SecurityLog.ip_address == ip,
                SecurityLog.created_at > since,
            )
            .count()
        )

    @staticmethod
    def login(db: Session, email: str, password: str,
              ip: str = "unknown", user_agent: str = "unknown") -> tuple[User, str]:
        failures = UserService.recent_failures(db, ip)
        if failures >= LOGIN_MAX_FAILURES:
            _log_event(db, "rate_limit_lockout", ip, user_agent,
                       details=f"IP {ip} blocked after {failures} failed attempts")
            db.commit()
            logger.warning("Login rate limit hit for %s", ip)
            raise RateLimited(
                f"Too many failed attempts. Please try again in {LOGIN_WINDOW_MINUTES} minutes."
            )

        email = email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user is None or not verify_password(password, user.hashed_password):
            _log_event(db, "login_failed", ip, user_agent,
                       user_id=user.id if user else None,
                       details="Incorrect password" if user else f"Attempt for unknown email {email}")
            db.commit()
            raise Unauthorized("Unauthorized", errors={"credentials": ["Invalid email or password"]})

        try:
            token = _open_session(db, user, ip, user_agent)
            _log_event(db, "login_success", ip, user_agent, user_id=user.id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("User %s logged in from %s", user.id, ip)
        return user, token

    @staticmethod
    def logout(db: Session, user_id: int, jti: str) -> None:
        session = db.query(UserSession).filter_by(token_jti=jti, user_id=user_id).first()
        if session is None:
            raise NotFound("Session not found")
        session.is_revoked = True
        _log_event(db, "logout", session.ip_address, session.user_agent, user_id=user_id)
        db.commit()

    @staticmethod
    def get_profile(db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    @staticmethod
    def update_profile(db: Session, user_id: int, data: dict) -> User:
        user = UserService.get_profile(db, user_id)

        email = data["email"].strip().lower() if data.get("email") else None
        if email and _email_taken(db, email, exclude_user_id=user.id):
            raise ValidationFailed.for_field("email", "The email has already been taken.")
        if data.get("password") and not verify_password(data.get("current_password") or "", user.hashed_password):
            raise ValidationFailed.for_field("current_password", "The current password is incorrect.")

        try:
            if email:
                user.email = email
            if data.get("name"):
                user.name = data["name"]
            if data.get("password"):
                user.hashed_password = hash_password(data["password"])
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        return user
