# src/aegis/api/routers/auth.py
from __future__ import annotations

from typing import Optional
from urllib.parse import quote, unquote, urlencode

import httpx
import sqlalchemy as sa
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aegis.app_logger import get_logger, mask_email
from aegis.auth.deps import get_optional_user
from aegis.core.config import Settings, get_settings
from aegis.db.base import utcnow
from aegis.db.models import User, UserStatus
from aegis.db.session import get_db
from aegis.errors import Unauthenticated
from aegis.schemas.common import ok
from aegis.schemas.users import UserResponse
from aegis.services.audit import record_audit
from aegis.services.google_oauth import (
    GoogleOAuthClient,
    GoogleUserInfo,
    default_role_for_email,
    get_google_client,
    is_allowed_email,
)
from aegis.sessions import SessionStore, end_session, get_session_store, start_session

router = APIRouter(prefix="/auth", tags=["auth"])
log = get_logger("routers.auth")

DOMAIN_ERROR = "Only IIT Mandi email addresses are allowed"
DOMAIN_DETAILS = "Please use your @iitmandi.ac.in or @students.iitmandi.ac.in email address"


def _frontend_for(cfg: Settings, origin: Optional[str]) -> str:
    """A caller-supplied origin is only honoured when it is one of the CORS origins."""
    origin = unquote(origin).strip().rstrip("/") if origin else ""
    if origin and origin in cfg.cors_origins:
        return origin
    if origin:
        log.warning("Ignoring redirect origin outside CORS_ORIGINS: %s", origin)
    return cfg.FRONTEND_URL.rstrip("/")


def _auth_error(frontend: str, error: str, details: str = "") -> RedirectResponse:
    qs = urlencode({"error": error, "details": details}, quote_via=quote)
    return RedirectResponse(f"{frontend}/auth-error?{qs}")


async def _upsert_google_user(db: AsyncSession, info: GoogleUserInfo, cfg: Settings) -> User:
    user = (await db.execute(sa.select(User).where(User.google_id == info.sub))).scalar_one_or_none()
    if user is not None:
        user.last_login_at = utcnow()
        return user

    user = User(
        email=info.email,
        google_id=info.sub,
        role=default_role_for_email(info.email, cfg.STUDENT_EMAIL_DOMAIN),
        status=UserStatus.ACTIVE,
        first_name=info.given_name,
        last_name=info.family_name or "",
        profile_picture=info.picture,
        last_login_at=utcnow(),
    )
    db.add(user)
    await db.flush()
    log.info("Created user %s role=%s", mask_email(info.email), user.role.value)
    return user


@router.get("/google")
async def google_login(
    redirect_origin: Optional[str] = Query(None),
    origin: Optional[str] = Query(None),
    cfg: Settings = Depends(get_settings),
    google: GoogleOAuthClient = Depends(get_google_client),
):
    """Send the browser to Google's consent screen; `state` carries the frontend origin."""
    frontend = _frontend_for(cfg, redirect_origin or origin)
    return RedirectResponse(google.authorization_url(state=frontend))


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    cfg: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    google: GoogleOAuthClient = Depends(get_google_client),
):
    frontend = _frontend_for(cfg, state)
    if not code:
        return _auth_error(frontend, "Authentication failed", "Missing authorization code")

    try:
        token = await google.exchange_code(code)
        info = await google.fetch_userinfo(token)
    except (httpx.HTTPError, KeyError, ValueError) as e:
        log.warning("Google sign-in failed: %s", e)
        return _auth_error(frontend, "Authentication failed", "Could not verify your Google account")

    if not is_allowed_email(info.email, cfg.allowed_email_domains):
        log.info("Rejected sign-in from non-institute email %s", mask_email(info.email))
        return _auth_error(frontend, DOMAIN_ERROR, DOMAIN_DETAILS)

    # accounts are keyed by google_id; an email already held by another row is refused, not linked
    try:
        user = await _upsert_google_user(db, info, cfg)
        if user.status != UserStatus.ACTIVE:
            await db.commit()
            log.info("Sign-in refused for %s: status=%s", mask_email(info.email), user.status.value)
            return _auth_error(frontend, "Account is not active", f"Account is {user.status.value}")

        await record_audit(db, user.id, "login", {"method": "google"})
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.warning("Sign-in refused for %s: email belongs to another account", mask_email(info.email))
        return _auth_error(frontend, "Authentication failed", "This email is already linked to another account")
    except SQLAlchemyError:
        await db.rollback()
        log.exception("Sign-in failed for %s", mask_email(info.email))
        return _auth_error(frontend, "Authentication failed", "Could not complete sign-in")

    response = RedirectResponse(f"{frontend}/dashboard")
    await start_session(store, response, user.id, cfg)
    log.info("Login ok for %s", mask_email(info.email))
    return response


@router.get("/logout")
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    user: Optional[User] = Depends(get_optional_user),
):
    if user is not None:
        await record_audit(db, user.id, "logout")
        await db.commit()

    response = JSONResponse(ok(message="Logged out successfully").model_dump())
    await end_session(store, request, response)
    return response


@router.get("/me")
async def me(user: Optional[User] = Depends(get_optional_user)):
    if user is None:
        raise Unauthenticated("Not authenticated")
    return ok(UserResponse.model_validate(user))
