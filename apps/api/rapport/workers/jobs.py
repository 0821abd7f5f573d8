from __future__ import annotations

import logging
from datetime import date, datetime

from rapport.core.clock import utcnow
from rapport.core.config import get_settings
from rapport.db.pg.queries import list_user_ids_with_contacts
from rapport.db.pg.session import SessionLocal
from rapport.services.analytics.daily import (
    backfill_user_analytics,
    generate_analytics_for_all_users,
    generate_daily_analytics,
)
from rapport.services.replies.lifecycle import sweep_unanswered
from rapport.services.replies.scheduler import get_reply_scheduler
from rapport.services.scoring.strength import refresh_relationship_strengths

logger = logging.getLogger(__name__)


def _parse_day(value: str | date | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def fire_scheduled_reply(message_id: str, armed_at: str | None = None) -> bool:
    """Delayed RQ entry point for an armed reply."""
    return get_reply_scheduler().fire(message_id, datetime.fromisoformat(armed_at) if armed_at else None)


def generate_daily_analytics_job(user_id: str, day: str | None = None) -> dict:
    db = SessionLocal()
    try:
        snapshot = generate_daily_analytics(db, user_id, _parse_day(day) or utcnow().date())
        return {"user_id": user_id, "day": snapshot.day.isoformat()}
    finally:
        db.close()


def generate_analytics_for_all_users_job(day: str | None = None) -> dict:
    db = SessionLocal()
    try:
        return generate_analytics_for_all_users(db, _parse_day(day))
    finally:
        db.close()


def backfill_user_analytics_job(user_id: str, days: int | None = None, end_day: str | None = None) -> dict:
    days = days or get_settings().analytics_backfill_days
    db = SessionLocal()
    try:
        snapshots = backfill_user_analytics(db, user_id, days=days, end_day=_parse_day(end_day))
        logger.info("analytics_backfilled", extra={"user_id": user_id, "days": len(snapshots)})
        return {"user_id": user_id, "days": len(snapshots)}
    finally:
        db.close()


def backfill_all_users_analytics_job(days: int | None = None, end_day: str | None = None) -> dict:
    db = SessionLocal()
    try:
        user_ids = list_user_ids_with_contacts(db)
    finally:
        db.close()

    for user_id in user_ids:
        backfill_user_analytics_job(user_id, days, end_day)
    return {"users": len(user_ids)}


def sweep_unanswered_messages(older_than_days: int | None = None, user_id: str | None = None) -> dict:
    older_than_days = older_than_days or get_settings().no_response_after_days
    db = SessionLocal()
    try:
        return sweep_unanswered(db, get_reply_scheduler(), older_than_days=older_than_days, user_id=user_id)
    finally:
        db.close()


def refresh_relationship_strengths_job(user_id: str | None = None) -> dict:
    db = SessionLocal()
    try:
        user_ids = [user_id] if user_id else list_user_ids_with_contacts(db)
        updated = 0
        for owner in user_ids:
            updated += refresh_relationship_strengths(db, owner)["updated_count"]
        return {"users": len(user_ids), "updated_count": updated}
    finally:
        db.close()
