# src/aegis/tests/test_partitioned_cookies.py
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from httpx import AsyncClient, ASGITransport

from aegis.middleware.partitioned_cookies import (
    PartitionedCookieMiddleware,
    is_local_referer,
    rewrite_session_cookie,
)

pytestmark = pytest.mark.anyio

COOKIE = "aegis_session=abc; HttpOnly; Max-Age=60; Path=/; SameSite=lax; Secure"


def test_is_local_referer():
    assert is_local_referer("http://localhost:4173/dashboard")
    assert is_local_referer("http://127.0.0.1:5173/")
    assert not is_local_referer("https://aegis.example/")
    assert not is_local_referer(None)


def test_rewrite_for_local_frontend():
    out = rewrite_session_cookie(COOKIE, local=True)
    assert out == "aegis_session=abc; HttpOnly; Max-Age=60; Path=/; SameSite=Lax"


def test_rewrite_for_cross_site_frontend():
    out = rewrite_session_cookie(COOKIE, local=False)
    assert out.endswith("; SameSite=None; Secure; Partitioned")
    assert out.count("Secure") == 1
    assert "SameSite=lax" not in out


async def test_middleware_only_touches_the_session_cookie():
    app = FastAPI()
    app.add_middleware(PartitionedCookieMiddleware, cookie_name="aegis_session")

    @app.get("/c")
    async def set_cookies():
        resp = JSONResponse({})
        resp.set_cookie("aegis_session", "abc", samesite="lax")
        resp.set_cookie("other", "1", samesite="strict")
        return resp

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        r = await ac.get("/c", headers={"referer": "https://aegis.example/"})

    cookies = r.headers.get_list("set-cookie")
    session = next(c for c in cookies if c.startswith("aegis_session="))
    other = next(c for c in cookies if c.startswith("other="))
    assert session.endswith("SameSite=None; Secure; Partitioned")
    assert "SameSite=strict" in other
