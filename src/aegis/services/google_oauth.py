# src/aegis/services/google_oauth.py
"""
Google sign-in over plain OAuth 2.0 authorization-code flow.

Only three calls are needed: build the consent URL, exchange the code for an
access token, and read the OpenID userinfo document. ``httpx`` does the HTTP;
tests inject an ``AsyncClient`` backed by ``httpx.MockTransport``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import Request

from aegis.app_logger import get_logger
from aegis.core.config import Settings, settings as default_settings
from aegis.db.models.enums import UserRole

log = get_logger("google_oauth")

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
SCOPES = ("openid", "email", "profile")


@dataclass(frozen=True)
class GoogleUserInfo:
    sub: str
    email: str
    given_name: str = ""
    family_name: Optional[str] = None
    picture: Optional[str] = None


class GoogleOAuthClient:
    def __init__(self, cfg: Settings = default_settings, http: Optional[httpx.AsyncClient] = None):
        self.client_id = cfg.GOOGLE_CLIENT_ID or ""
        self.client_secret = cfg.GOOGLE_CLIENT_SECRET or ""
        self.redirect_uri = cfg.GOOGLE_REDIRECT_URI or ""
        self._timeout = cfg.OUTBOUND_TIMEOUT_SECONDS
        self._http = http

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._http is not None:
            resp = await self._http.request(method, url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp

    async def exchange_code(self, code: str) -> str:
        resp = await self._request(
            "POST",
            TOKEN_URL,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )
        token = resp.json().get("access_token")
        if not token:
            log.warning("Google token endpoint answered %s without an access_token", resp.status_code)
            raise httpx.HTTPStatusError("token response has no access_token", request=resp.request, response=resp)
        return token

    async def fetch_userinfo(self, access_token: str) -> GoogleUserInfo:
        resp = await self._request(
            "GET",
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        body = resp.json()
        return GoogleUserInfo(
            sub=str(body["sub"]),
            email=str(body["email"]).lower(),
            given_name=body.get("given_name") or "",
            family_name=body.get("family_name"),
            picture=body.get("picture"),
        )


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def is_allowed_email(email: str, domains) -> bool:
    return email_domain(email) in {d.lower() for d in domains}


def default_role_for_email(email: str, student_domain: Optional[str] = None) -> UserRole:
    """Students sign in from the students sub-domain; everyone else starts as Faculty."""
    student_domain = (student_domain or default_settings.STUDENT_EMAIL_DOMAIN).lower()
    return UserRole.STUDENT if email_domain(email) == student_domain else UserRole.FACULTY


def get_google_client(request: Request) -> GoogleOAuthClient:
    """FastAPI dependency; tests override it with a client on a mock transport."""
    return GoogleOAuthClient(request.app.state.settings)
