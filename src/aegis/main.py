# src/aegis/main.py
from __future__ import annotations

import logging
import logging.config
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aegis.api.routers import (
    admin,
    attendance,
    auth,
    courses,
    dev,
    events,
    grievances,
    health,
    opportunities,
    resources,
    tasks,
)
from aegis.app_logger import get_logger
from aegis.core.config import Settings, settings as default_settings
from aegis.db.base import Base
from aegis.db.session import build_engine, build_sessionmaker
from aegis.errors import register_exception_handlers
from aegis.middleware.partitioned_cookies import PartitionedCookieMiddleware
from aegis.sessions import attach_session_store

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(process)d %(module)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "":               {"handlers": ["console"], "level": "INFO"},
        "uvicorn":        {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.error":  {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.access": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

logging.config.dictConfig(LOGGING)
log = get_logger("main")


def _lifespan_for(cfg: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not cfg.TESTING:
            cfg.require_secrets()

        engine = build_engine(cfg)
        app.state.engine = engine
        app.state.async_sessionmaker = build_sessionmaker(engine)
        log.info("DB engine ready: %s", engine.url.render_as_string(hide_password=True))

        if cfg.DB_CREATE_ALL:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            log.info("Schema ensured via create_all")

        try:
            yield
        finally:
            await app.state.session_store.aclose()
            await engine.dispose()
            log.info("DB engine disposed")

    return lifespan


def create_app(cfg: Optional[Settings] = None) -> FastAPI:
    cfg = cfg or default_settings
    logging.getLogger("aegis").setLevel(cfg.LOG_LEVEL.upper())

    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION, lifespan=_lifespan_for(cfg))
    app.state.settings = cfg

    # created here rather than in the lifespan so it exists even when the
    # lifespan is not run (ASGI test transports)
    attach_session_store(app, cfg)

    register_exception_handlers(app)

    # added first so CORS (added last) stays the outermost layer
    app.add_middleware(PartitionedCookieMiddleware, cookie_name=cfg.SESSION_COOKIE_NAME)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["content-type", "authorization", "accept"],
    )
    log.info("CORS origins: %s", cfg.cors_origins)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(grievances.router)
    app.include_router(grievances.departments_router)
    app.include_router(admin.router)
    app.include_router(courses.router)
    app.include_router(resources.router)
    app.include_router(attendance.router)
    app.include_router(events.router)
    app.include_router(opportunities.router)
    app.include_router(opportunities.applications_router)
    app.include_router(tasks.router)
    if cfg.DEV_ROUTES_ENABLED:
        app.include_router(dev.router)
        log.info("Dev routes enabled")

    return app


app = create_app()
