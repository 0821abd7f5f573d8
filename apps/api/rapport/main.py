from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rapport.api.v1.routes import admin, analytics, contacts, health, messages, scores
from rapport.core.config import get_settings
from rapport.core.logging import configure_logging
from rapport.db.pg.base import Base
from rapport.db.pg import models as _models  # noqa: F401
from rapport.db.pg.session import engine
from rapport.services.replies.scheduler import get_reply_scheduler

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()
app = FastAPI(title=settings.app_name)
allowed_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)
    if settings.recover_replies_on_startup:
        recovered = get_reply_scheduler().recover()
        logger.info("startup_complete", extra={"recovered_reply_tasks": recovered})


app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(messages.router, prefix=settings.api_prefix)
app.include_router(contacts.router, prefix=settings.api_prefix)
app.include_router(analytics.router, prefix=settings.api_prefix)
app.include_router(scores.router, prefix=settings.api_prefix)
app.include_router(admin.router, prefix=settings.api_prefix)
