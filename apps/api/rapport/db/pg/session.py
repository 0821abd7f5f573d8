from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from rapport.core.config import Settings, get_settings


def _sqlalchemy_dsn(dsn: str) -> str:
    if dsn.startswith("postgresql://"):
        return dsn.replace("postgresql://", "postgresql+psycopg://", 1)
    return dsn


def engine_options(dsn: str, settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True}
    if dsn.startswith("sqlite"):
        # Reply timers fire on their own threads and open their own sessions.
        options["connect_args"] = {"check_same_thread": False}
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
        pool_recycle=settings.db_pool_recycle_seconds,
    )
    return options


def build_engine(settings: Settings) -> Engine:
    dsn = _sqlalchemy_dsn(settings.database_dsn)
    return create_engine(dsn, **engine_options(dsn, settings))


engine = build_engine(get_settings())
# Snapshots and messages are read after commit by routes and timers alike.
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
