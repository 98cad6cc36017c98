from __future__ import annotations

import re

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from aegis.app_logger import get_logger
from aegis.core.config import settings

log = get_logger("middleware.cookies")

_STRIP_ATTRS = re.compile(r";\s*(?:Secure|SameSite=[A-Za-z]+)(?=;|$)", re.IGNORECASE)
LOCAL_MARKERS = ("localhost", "127.0.0.1")


def is_local_referer(referer: str | None) -> bool:
    return bool(referer) and any(m in referer for m in LOCAL_MARKERS)


def rewrite_session_cookie(cookie: str, local: bool) -> str:
    cookie = _STRIP_ATTRS.sub("", cookie)
    if local:
        return f"{cookie}; SameSite=Lax"
    # cross-site frontends need a partitioned third-party cookie
    return f"{cookie}; SameSite=None; Secure; Partitioned"


class PartitionedCookieMiddleware(BaseHTTPMiddleware):
    """Rewrite the session cookie's SameSite/Secure attributes based on the Referer."""

    def __init__(self, app, cookie_name: str | None = None):
        super().__init__(app)
        self.cookie_name = cookie_name or settings.SESSION_COOKIE_NAME

    async def dispatch(self, request: Request, call_next):
        local = is_local_referer(request.headers.get("referer"))
        response = await call_next(request)

        cookies = response.headers.getlist("set-cookie")
        if not cookies:
            return response

        prefix = f"{self.cookie_name}="
        rewritten = [
            rewrite_session_cookie(c, local) if c.startswith(prefix) else c
            for c in cookies
        ]
        log.debug("Session cookie rewrite: local=%s count=%d", local, len(cookies))

        del response.headers["set-cookie"]
        for c in rewritten:
            response.headers.append("set-cookie", c)
        return response
