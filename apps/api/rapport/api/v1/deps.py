from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends

from rapport.core.config import Settings, get_settings
from rapport.core.security import require_user_id
from rapport.db.pg.session import SessionLocal
from rapport.services.replies.scheduler import ReplyScheduler, get_reply_scheduler


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_settings_dep() -> Settings:
    return get_settings()


def get_current_user_id(user_id: str = Depends(require_user_id)) -> str:
    return user_id


def get_scheduler() -> ReplyScheduler:
    return get_reply_scheduler()
