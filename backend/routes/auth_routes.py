# ---------- routes/auth_routes.py ----------
"""
Auth routes: register, login, logout and the caller's profile.
Tokens are JWTs backed by a sessions row, so logout revokes them server-side.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import AfterValidator, BaseModel, Field
from sqlalchemy.orm import Session

from auth import get_current_user, get_token_payload
from database import get_db
from dependencies import client_meta
from resources import user_resource
from responses import send_created, send_success
from services.user_service import UserService

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError("The email must be a valid email address.")
    return value


Email = Annotated[str, Field(max_length=255), AfterValidator(_normalize_email)]


# ── Pydantic schemas ──────────────────────────────────────────────
class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: Email
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[Email] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    current_password: Optional[str] = None


def _authorization(token: str) -> dict:
    return {"token": token, "type": "bearer"}


# ── Routes ────────────────────────────────────────────────────────
@router.post("/register", status_code=201)
async def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    ip, user_agent = client_meta(request)
    user, token = UserService.register(db, body.name, body.email, body.password, ip, user_agent)
    return send_created(
        {"user": user_resource(user), "authorization": _authorization(token)},
        "User registered successfully",
    )


@router.post("/login")
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate with email + password; throttled per client IP."""
    ip, user_agent = client_meta(request)
    user, token = UserService.login(db, body.email, body.password, ip, user_agent)
    return send_success(
        {"user": user_resource(user), "authorization": _authorization(token)},
        "Login successful",
    )


@router.post("/logout")
async def logout(payload: dict = Depends(get_token_payload), db: Session = Depends(get_db)):
    """Revoke the session behind the presented token."""
    UserService.logout(db, payload["user_id"], payload["jti"])
    return send_success(None, "Logout successful")


@router.get("/profile")
async def show_profile(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    user = UserService.get_profile(db, user_id)
    return send_success(user_resource(user), "User profile fetched successfully")


@router.put("/profile")
async def update_profile(body: ProfileUpdate, user_id: int = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    user = UserService.update_profile(db, user_id, body.model_dump(exclude_unset=True))
    return send_success(user_resource(user), "User profile updated successfully")
