# src/aegis/sessions.py
"""
Server-side session storage.

The cookie only carries an opaque session id; the data (currently just the
``user_id``) lives in a pluggable store:

* ``MemorySession`` keeps everything in this process. Sessions vanish on
  restart and are not shared between workers, which is fine for a single
  instance.
* ``RedisSession`` stores one JSON blob per sid in Redis for multi-instance
  deployments.

Both expose the same async API, so handlers never know which one is active.
"""
from __future__ import annotations

import json
import secrets
import time
from typing import Any, Dict, Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request
from starlette.responses import Response

from aegis.app_logger import get_logger
from aegis.core.config import Settings, settings as default_settings

log = get_logger("sessions")

USER_ID_KEY = "user_id"


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionStore:
    """Async interface every backend implements."""

    def __init__(self, ttl: int):
        self.ttl = ttl

    async def create(self, data: Dict[str, Any], ttl: Optional[int] = None) -> str:
        sid = new_session_id()
        await self.set(sid, data, ttl=ttl)
        return sid

    async def get(self, sid: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def set(self, sid: str, data: Dict[str, Any], ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    async def touch(self, sid: str, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    async def delete(self, sid: str) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class MemorySession(SessionStore):
    """Process-local dict of ``sid -> (expires_at, data)`` on the monotonic clock."""

    def __init__(self, ttl: int):
        super().__init__(ttl)
        self._data: Dict[str, tuple[float, Dict[str, Any]]] = {}

    def _expired(self, expires_at: float) -> bool:
        return expires_at <= time.monotonic()

    async def get(self, sid: str) -> Optional[Dict[str, Any]]:
        entry = self._data.get(sid)
        if entry is None:
            return None
        expires_at, data = entry
        if self._expired(expires_at):
            self._data.pop(sid, None)
            return None
        return dict(data)

    def _sweep(self) -> None:
        now = time.monotonic()
        for sid in [s for s, (expires_at, _) in self._data.items() if expires_at <= now]:
            del self._data[sid]

    async def set(self, sid: str, data: Dict[str, Any], ttl: Optional[int] = None) -> None:
        # abandoned sessions are never read again, so expire them on write
        self._sweep()
        self._data[sid] = (time.monotonic() + (ttl or self.ttl), dict(data))

    async def touch(self, sid: str, ttl: Optional[int] = None) -> None:
        entry = self._data.get(sid)
        if entry is not None and not self._expired(entry[0]):
            self._data[sid] = (time.monotonic() + (ttl or self.ttl), entry[1])

    async def delete(self, sid: str) -> None:
        self._data.pop(sid, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisSession(SessionStore):
    """
    Store sessions as a single JSON blob per SID at key ``{prefix}{sid}``.
    """

    def __init__(self, url: str, prefix: str, ttl: int, client: Any = None):
        super().__init__(ttl)
        self._r = client if client is not None else redis.from_url(url, decode_responses=True)
        self._p = prefix
        log.info("RedisSession initialized: prefix=%s ttl=%s", prefix, ttl)

    def _k(self, sid: str) -> str:
        return f"{self._p}{sid}"

    async def get(self, sid: str) -> Optional[Dict[str, Any]]:
        raw = await self._r.get(self._k(sid))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning("Discarding unreadable session blob for sid=%s…", sid[:8])
            await self.delete(sid)
            return None
        return data if isinstance(data, dict) else None

    async def set(self, sid: str, data: Dict[str, Any], ttl: Optional[int] = None) -> None:
        await self._r.set(self._k(sid), json.dumps(data), ex=ttl or self.ttl)
        log.debug("SET %s… (ttl=%s)", self._k(sid)[: len(self._p) + 8], ttl or self.ttl)

    async def touch(self, sid: str, ttl: Optional[int] = None) -> None:
        await self._r.expire(self._k(sid), ttl or self.ttl)

    async def delete(self, sid: str) -> None:
        await self._r.delete(self._k(sid))

    async def aclose(self) -> None:
        await self._r.aclose()


# ---- FastAPI integration helpers ----
def build_session_store(cfg: Settings) -> SessionStore:
    backend = (cfg.SESSION_BACKEND or "memory").strip().lower()
    if backend == "redis":
        return RedisSession(cfg.REDIS_URL, cfg.SESSION_PREFIX, cfg.SESSION_TTL_SECONDS)
    if backend == "memory":
        return MemorySession(cfg.SESSION_TTL_SECONDS)
    raise RuntimeError(f"Unknown SESSION_BACKEND: {cfg.SESSION_BACKEND!r}")


def attach_session_store(app: FastAPI, cfg: Settings = default_settings) -> SessionStore:
    store = build_session_store(cfg)
    app.state.session_store = store
    log.info("Session backend: %s", type(store).__name__)
    return store


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def _cfg_for(request: Optional[Request], cfg: Optional[Settings]) -> Settings:
    if cfg is not None:
        return cfg
    if request is not None:
        return request.app.state.settings
    return default_settings


def session_id_from(request: Request, cfg: Optional[Settings] = None) -> Optional[str]:
    cfg = _cfg_for(request, cfg)
    return request.cookies.get(cfg.SESSION_COOKIE_NAME) or None


async def start_session(
    store: SessionStore,
    response: Response,
    user_id: Any,
    cfg: Optional[Settings] = None,
) -> str:
    cfg = _cfg_for(None, cfg)
    sid = await store.create({USER_ID_KEY: str(user_id)})
    response.set_cookie(
        key=cfg.SESSION_COOKIE_NAME,
        value=sid,
        max_age=cfg.SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=cfg.COOKIE_SECURE,
    )
    return sid


async def end_session(
    store: SessionStore,
    request: Request,
    response: Response,
    cfg: Optional[Settings] = None,
) -> None:
    cfg = _cfg_for(request, cfg)
    sid = session_id_from(request, cfg)
    if sid:
        await store.delete(sid)
    response.delete_cookie(
        cfg.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=cfg.COOKIE_SECURE,
    )
