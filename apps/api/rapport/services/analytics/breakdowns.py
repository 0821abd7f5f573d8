from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from rapport.core.clock import as_utc, utcnow
from rapport.db.pg.queries import interaction_counts_by, list_follow_ups, list_snapshots
from rapport.services.insights.breakdowns import analyze_channels, analyze_engagement_quality, analyze_follow_ups


def _period(period_days: int, now: datetime | None) -> tuple[datetime, datetime]:
    end = as_utc(now or utcnow())
    return end - timedelta(days=max(period_days, 1)), end


def get_follow_up_effectiveness(
    db: Session, user_id: str, *, period_days: int = 30, now: datetime | None = None
) -> dict[str, Any]:
    """Follow-ups raised by interactions in the trailing period, judged as of ``now``."""
    start, end = _period(period_days, now)
    result = analyze_follow_ups(list_follow_ups(db, user_id, start=start, end=end), end)
    return {
        "period_days": period_days,
        "start": start,
        "end": end,
        "metrics": {
            "total": result.total,
            "completed": result.completed,
            "effective": result.effective,
            "overdue": result.overdue,
            "completion_rate": result.completion_rate,
            "effectiveness_rate": result.effectiveness_rate,
        },
        "insights": [insight.to_dict() for insight in result.insights],
    }


def get_channel_insights(db: Session, user_id: str, *, period_days: int = 30, now: datetime | None = None) -> dict[str, Any]:
    start, end = _period(period_days, now)
    result = analyze_channels(interaction_counts_by(db, user_id, "type", start=start, end=end))
    payload = asdict(result)
    payload.update(period_days=period_days, start=start, end=end)
    return payload


def get_engagement_quality(
    db: Session, user_id: str, *, period_days: int = 30, end_day: date | None = None
) -> dict[str, Any]:
    end_day = end_day or utcnow().date()
    start_day = end_day - timedelta(days=max(period_days, 1) - 1)
    points = [
        (
            snapshot.day,
            snapshot.relationship_distribution_json,
            float(snapshot.engagement_metrics_json.get("engagement_rate", 0.0)),
        )
        for snapshot in list_snapshots(db, user_id, start=start_day, end=end_day)
    ]
    breakdown = analyze_engagement_quality(points)
    breakdown["insights"] = [insight.to_dict() for insight in breakdown["insights"]]
    breakdown.update(period_days=period_days, start_day=start_day, end_day=end_day)
    return breakdown
