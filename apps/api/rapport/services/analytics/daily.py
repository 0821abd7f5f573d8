"""Daily analytics snapshots.

A snapshot describes a user's network as of the end of one UTC day. Every read happens
before the single upsert, so a failed read never leaves a half-built row behind.
Recomputing a day over unchanged data yields the same row apart from ``processed_at``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rapport.core.clock import as_utc, day_window, utcnow
from rapport.core.config import get_settings
from rapport.core.errors import AnalyticsStoreError
from rapport.db.pg.models import STRENGTH_AT_RISK, STRENGTH_MEDIUM, STRENGTH_STRONG, STRENGTH_WEAK, AnalyticsSnapshot
from rapport.db.pg.queries import (
    count_active_contacts,
    count_contacts,
    count_interactions,
    get_latest_snapshot as latest_snapshot_query,
    get_previous_snapshot,
    interaction_counts_by,
    list_follow_ups,
    list_snapshots,
    list_user_ids_with_contacts,
    relationship_strength_counts,
    upsert_snapshot,
)

logger = logging.getLogger(__name__)

INTERACTION_TYPE_KEYS = {
    "Email": "email",
    "Call": "call",
    "Message": "message",
    "Meeting": "meeting",
    "Coffee": "coffee",
    "Lunch": "lunch",
    "Conference": "conference",
    "Referral": "referral",
    "Other": "other",
}
OUTCOME_KEYS = {
    "Positive": "positive",
    "Neutral": "neutral",
    "Negative": "negative",
    "Follow-up needed": "follow_up_needed",
    "Action required": "action_required",
}

LOW_ENGAGEMENT_THRESHOLD = 30.0
MIN_NEW_CONTACTS_PER_DAY = 2
AT_RISK_HIGH_SHARE = 0.25


def _bucket(counts: dict[str, int], key_map: dict[str, str]) -> dict[str, int]:
    buckets = {key: 0 for key in key_map.values()}
    for raw_key, count in counts.items():
        key = key_map.get(raw_key) or key_map.get(raw_key.strip().title())
        if key is None:
            if "other" in buckets:
                buckets["other"] += count
            continue
        buckets[key] += count
    return buckets


def _growth_rate(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def _recommendations(engagement_rate: float, new_contacts: int) -> list[dict[str, str]]:
    recommendations: list[dict[str, str]] = []
    if engagement_rate < LOW_ENGAGEMENT_THRESHOLD:
        recommendations.append(
            {
                "type": "Increase Engagement",
                "priority": "High",
                "description": "Your engagement rate is below 30%. Consider reaching out to more contacts regularly.",
                "impact": "High",
            }
        )
    if new_contacts < MIN_NEW_CONTACTS_PER_DAY:
        recommendations.append(
            {
                "type": "Add Contacts",
                "priority": "Medium",
                "description": "Consider adding more contacts to expand your network.",
                "impact": "Medium",
            }
        )
    return recommendations


def _risk_factors(total_contacts: int, active_contacts: int, at_risk: int) -> list[dict[str, str]]:
    factors: list[dict[str, str]] = []
    if at_risk > 0:
        share = at_risk / total_contacts if total_contacts else 0.0
        factors.append(
            {
                "factor": f"{at_risk} contacts are marked At-Risk",
                "severity": "High" if share >= AT_RISK_HIGH_SHARE else "Medium",
                "mitigation": "Reconnect with at-risk contacts before the relationships go cold.",
            }
        )
    if total_contacts > 0 and active_contacts == 0:
        factors.append(
            {
                "factor": "No contacts engaged in the engagement window",
                "severity": "Critical",
                "mitigation": "Schedule outreach to your strongest relationships this week.",
            }
        )
    return factors


def _gather(db: Session, user_id: str, day: date) -> dict[str, Any]:
    start, end = day_window(day)
    window_days = get_settings().engagement_window_days

    total_contacts = count_contacts(db, user_id, end=end)
    new_contacts = count_contacts(db, user_id, start=start, end=end)
    total_interactions = count_interactions(db, user_id, end=end)
    new_interactions = count_interactions(db, user_id, start=start, end=end)
    by_type = interaction_counts_by(db, user_id, "type", start=start, end=end)
    by_outcome = interaction_counts_by(db, user_id, "outcome", start=start, end=end)
    strengths = relationship_strength_counts(db, user_id, end=end)
    active_contacts = count_active_contacts(db, user_id, since=end - timedelta(days=window_days), end=end)
    follow_ups = list_follow_ups(db, user_id, start=start, end=end)
    previous = get_previous_snapshot(db, user_id, day)

    return {
        "total_contacts": total_contacts,
        "new_contacts": new_contacts,
        "total_interactions": total_interactions,
        "new_interactions": new_interactions,
        "by_type": by_type,
        "by_outcome": by_outcome,
        "strengths": strengths,
        "active_contacts": active_contacts,
        "follow_ups_scheduled": len(follow_ups),
        "follow_ups_completed": sum(
            1 for item in follow_ups if item.follow_up_date is not None and as_utc(item.follow_up_date) < end
        ),
        "previous": None
        if previous is None
        else {
            "total_contacts": previous.contact_growth_json.get("total", 0),
            "total_interactions": previous.interaction_metrics_json.get("total", 0),
            "engagement_rate": previous.engagement_metrics_json.get("engagement_rate", 0.0),
        },
    }


def build_snapshot_values(reads: dict[str, Any]) -> dict[str, Any]:
    """Pure transformation of the gathered reads into snapshot columns (minus ``processed_at``)."""
    total_contacts = reads["total_contacts"]
    total_interactions = reads["total_interactions"]
    active_contacts = reads["active_contacts"]
    engagement_rate = active_contacts / total_contacts * 100 if total_contacts > 0 else 0.0

    growth = {"contact_growth_rate": 0.0, "interaction_growth_rate": 0.0, "engagement_growth_rate": 0.0}
    previous = reads["previous"]
    if previous is not None:
        previous_rate = float(previous["engagement_rate"] or 0.0)
        growth = {
            "contact_growth_rate": _growth_rate(total_contacts, previous["total_contacts"]),
            "interaction_growth_rate": _growth_rate(total_interactions, previous["total_interactions"]),
            "engagement_growth_rate": engagement_rate - previous_rate if previous_rate > 0 else 0.0,
        }

    strengths = reads["strengths"]
    at_risk = strengths.get(STRENGTH_AT_RISK, 0)

    return {
        "contact_growth_json": {
            "total": total_contacts,
            "new": reads["new_contacts"],
            "removed": 0,
            "net": reads["new_contacts"],
        },
        "interaction_metrics_json": {
            "total": total_interactions,
            "new": reads["new_interactions"],
            "by_type": _bucket(reads["by_type"], INTERACTION_TYPE_KEYS),
            "by_outcome": _bucket(reads["by_outcome"], OUTCOME_KEYS),
        },
        "relationship_distribution_json": {
            "strong": strengths.get(STRENGTH_STRONG, 0),
            "medium": strengths.get(STRENGTH_MEDIUM, 0),
            "weak": strengths.get(STRENGTH_WEAK, 0),
            "at_risk": at_risk,
        },
        "engagement_metrics_json": {
            "active_contacts": active_contacts,
            "engagement_rate": engagement_rate,
            "average_interactions_per_contact": total_interactions / total_contacts if total_contacts > 0 else 0.0,
        },
        "growth_trends_json": growth,
        "follow_up_metrics_json": {
            "scheduled": reads["follow_ups_scheduled"],
            "completed": reads["follow_ups_completed"],
        },
        "ai_insights_json": {
            "network_health_score": max(0.0, min(100.0, engagement_rate)),
            "recommendations": _recommendations(engagement_rate, reads["new_contacts"]),
            "risk_factors": _risk_factors(total_contacts, active_contacts, at_risk),
        },
    }


def generate_daily_analytics(
    db: Session,
    user_id: str,
    day: date | datetime,
    *,
    processed_at: datetime | None = None,
) -> AnalyticsSnapshot:
    if isinstance(day, datetime):
        day = as_utc(day).date()

    try:
        reads = _gather(db, user_id, day)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("daily_analytics_read_failed", extra={"user_id": user_id, "day": day.isoformat()})
        raise AnalyticsStoreError(f"Failed to read analytics inputs for {user_id} on {day.isoformat()}") from exc

    values = build_snapshot_values(reads)
    values["processed_at"] = as_utc(processed_at or utcnow())

    try:
        upsert_snapshot(db, user_id, day, values)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("daily_analytics_write_failed", extra={"user_id": user_id, "day": day.isoformat()})
        raise AnalyticsStoreError(f"Failed to store analytics for {user_id} on {day.isoformat()}") from exc

    snapshot = db.get(AnalyticsSnapshot, (user_id, day), populate_existing=True)
    logger.info(
        "daily_analytics_generated",
        extra={
            "user_id": user_id,
            "day": day.isoformat(),
            "total_contacts": reads["total_contacts"],
            "engagement_rate": round(values["engagement_metrics_json"]["engagement_rate"], 2),
        },
    )
    return snapshot


def backfill_user_analytics(db: Session, user_id: str, *, days: int, end_day: date | None = None) -> list[AnalyticsSnapshot]:
    """Generate ``days`` snapshots ending at ``end_day``, oldest first so each sees its predecessor."""
    end_day = end_day or utcnow().date()
    snapshots = []
    for offset in range(days - 1, -1, -1):
        snapshots.append(generate_daily_analytics(db, user_id, end_day - timedelta(days=offset)))
    return snapshots


def generate_analytics_for_all_users(db: Session, day: date | None = None) -> dict[str, int]:
    day = day or utcnow().date()
    generated = 0
    failed = 0
    for user_id in list_user_ids_with_contacts(db):
        try:
            generate_daily_analytics(db, user_id, day)
            generated += 1
        except AnalyticsStoreError:
            failed += 1
    logger.info("daily_analytics_batch_complete", extra={"day": day.isoformat(), "generated": generated, "failed": failed})
    return {"generated": generated, "failed": failed}


def snapshot_to_dict(snapshot: AnalyticsSnapshot) -> dict[str, Any]:
    return {
        "user_id": snapshot.user_id,
        "day": snapshot.day,
        "contact_growth": snapshot.contact_growth_json,
        "interaction_metrics": snapshot.interaction_metrics_json,
        "relationship_distribution": snapshot.relationship_distribution_json,
        "engagement_metrics": snapshot.engagement_metrics_json,
        "growth_trends": snapshot.growth_trends_json,
        "follow_up_metrics": snapshot.follow_up_metrics_json,
        "ai_insights": snapshot.ai_insights_json,
        "processed_at": as_utc(snapshot.processed_at),
    }


def get_latest_snapshot(db: Session, user_id: str) -> AnalyticsSnapshot | None:
    return latest_snapshot_query(db, user_id)


def get_growth_trends(db: Session, user_id: str, *, period_days: int = 30, end_day: date | None = None) -> dict[str, Any]:
    """Snapshot series for the trailing period plus a few aggregates over it."""
    end_day = end_day or utcnow().date()
    start_day = end_day - timedelta(days=max(period_days, 1) - 1)
    snapshots = list_snapshots(db, user_id, start=start_day, end=end_day)

    engagement = [float(s.engagement_metrics_json.get("engagement_rate", 0.0)) for s in snapshots]
    health = [float(s.ai_insights_json.get("network_health_score", 0.0)) for s in snapshots]
    return {
        "period_days": period_days,
        "start_day": start_day,
        "end_day": end_day,
        "snapshots": [snapshot_to_dict(snapshot) for snapshot in snapshots],
        "summary": {
            "snapshot_count": len(snapshots),
            "total_contacts": snapshots[-1].contact_growth_json.get("total", 0) if snapshots else 0,
            "new_interactions": sum(int(s.interaction_metrics_json.get("new", 0)) for s in snapshots),
            "average_engagement_rate": sum(engagement) / len(engagement) if engagement else 0.0,
            "average_network_health": sum(health) / len(health) if health else 0.0,
        },
    }
