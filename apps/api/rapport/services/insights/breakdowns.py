"""Threshold analyses over follow-ups, channels and relationship quality.

Pure functions: callers gather the rows, these turn them into metrics and insights.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from rapport.core.clock import as_utc
from rapport.db.pg.models import Interaction
from rapport.services.insights.generator import Insight
from rapport.services.scoring.networking_score import round_half_up

FOLLOW_UP_LOW_COMPLETION = 50
FOLLOW_UP_LOW_EFFECTIVENESS = 60
EFFECTIVE_OUTCOMES = frozenset({"Positive", "Follow-up needed"})

CHANNELS = ("email", "call", "message", "meeting", "coffee", "lunch", "conference", "referral", "other")
DOMINANT_CHANNEL_SHARE = 60
EMAIL_HEAVY_SHARE = 50
LOW_CALL_SHARE = 10

QUALITY_TREND_DELTA = 0.05
LOW_AVERAGE_ENGAGEMENT = 30.0
EXCELLENT_STRONG_SHARE = 60.0
GOOD_STRONG_SHARE = 40.0


@dataclass(frozen=True)
class FollowUpEffectiveness:
    total: int
    completed: int
    effective: int
    overdue: int
    completion_rate: int
    effectiveness_rate: int
    insights: list[Insight] = field(default_factory=list)


@dataclass(frozen=True)
class ChannelInsights:
    total_interactions: int
    breakdown: dict[str, int]
    percentages: dict[str, int]
    primary_channel: str | None
    insights: list[Insight] = field(default_factory=list)


def analyze_follow_ups(follow_ups: Sequence[Interaction], now: datetime) -> FollowUpEffectiveness:
    """A follow-up is completed once its date has passed and overdue while it also lacks notes."""
    now = as_utc(now)
    dated = [item for item in follow_ups if item.follow_up_date is not None]
    completed = [item for item in dated if as_utc(item.follow_up_date) <= now]
    effective = [item for item in completed if item.outcome in EFFECTIVE_OUTCOMES]
    overdue = [item for item in dated if as_utc(item.follow_up_date) < now and not item.follow_up_notes]

    total = len(follow_ups)
    completion_rate = round_half_up(len(completed) / total * 100) if total else 0
    effectiveness_rate = round_half_up(len(effective) / len(completed) * 100) if completed else 0

    insights: list[Insight] = []
    if total and completion_rate < FOLLOW_UP_LOW_COMPLETION:
        insights.append(
            Insight(
                type="warning",
                title="Low Follow-up Completion",
                message=f"Only {completion_rate}% of follow-ups are completed on time",
                recommendation="Set reminders and prioritize follow-up tasks to improve completion rate",
                impact="high",
            )
        )
    if completed and effectiveness_rate < FOLLOW_UP_LOW_EFFECTIVENESS:
        insights.append(
            Insight(
                type="warning",
                title="Low Follow-up Effectiveness",
                message=f"{effectiveness_rate}% of completed follow-ups are effective",
                recommendation="Improve follow-up quality by being more specific and timely in your communications",
            )
        )
    if overdue:
        insights.append(
            Insight(
                type="warning",
                title="Overdue Follow-ups",
                message=f"{len(overdue)} follow-ups are overdue",
                recommendation="Address overdue follow-ups immediately to maintain relationship quality",
                impact="high",
            )
        )

    return FollowUpEffectiveness(
        total=total,
        completed=len(completed),
        effective=len(effective),
        overdue=len(overdue),
        completion_rate=completion_rate,
        effectiveness_rate=effectiveness_rate,
        insights=insights,
    )


def analyze_channels(type_counts: Mapping[str, int]) -> ChannelInsights:
    breakdown = {channel: 0 for channel in CHANNELS}
    for interaction_type, count in type_counts.items():
        key = interaction_type.lower()
        if key in breakdown:
            breakdown[key] += max(0, int(count))

    total = sum(breakdown.values())
    percentages = {
        channel: round_half_up(count / total * 100) if total else 0 for channel, count in breakdown.items()
    }
    if not total:
        return ChannelInsights(total_interactions=0, breakdown=breakdown, percentages=percentages, primary_channel=None)

    # Ties go to the channel listed first.
    primary = max(CHANNELS, key=lambda channel: percentages[channel])
    insights = [
        Insight(
            type="info",
            title="Primary Channel",
            message=f"Your primary communication channel is {primary} ({percentages[primary]}%)",
            recommendation=(
                "Consider diversifying your communication channels for better relationship building"
                if percentages[primary] > DOMINANT_CHANNEL_SHARE
                else "Good channel diversity! Keep using multiple communication methods"
            ),
            impact="low",
        )
    ]
    if percentages["email"] > EMAIL_HEAVY_SHARE:
        insights.append(
            Insight(
                type="warning",
                title="Email Heavy",
                message="You rely heavily on email communication",
                recommendation="Try adding more phone calls or in-person meetings for stronger relationships",
            )
        )
    if percentages["call"] < LOW_CALL_SHARE:
        insights.append(
            Insight(
                type="info",
                title="Few Phone Calls",
                message="Very few phone calls in your interactions",
                recommendation="Phone calls can build stronger relationships - consider scheduling more calls",
            )
        )

    return ChannelInsights(
        total_interactions=total,
        breakdown=breakdown,
        percentages=percentages,
        primary_channel=primary,
        insights=insights,
    )


def _distribution_total(distribution: Mapping[str, Any]) -> int:
    return sum(int(distribution.get(key, 0)) for key in ("strong", "medium", "weak", "at_risk"))


def _strong_share(distribution: Mapping[str, Any]) -> float:
    total = _distribution_total(distribution)
    return int(distribution.get("strong", 0)) / total * 100 if total else 0.0


def _week_start(day: date) -> date:
    # Weeks start on Sunday.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def quality_trend(first: Mapping[str, Any], last: Mapping[str, Any]) -> str:
    if not _distribution_total(first) or not _distribution_total(last):
        return "stable"
    change = (_strong_share(last) - _strong_share(first)) / 100
    if change > QUALITY_TREND_DELTA:
        return "improving"
    if change < -QUALITY_TREND_DELTA:
        return "declining"
    return "stable"


def _quality_point(day: date, distribution: Mapping[str, Any], engagement_rate: float) -> dict[str, Any]:
    return {
        "day": day,
        "strong": int(distribution.get("strong", 0)),
        "medium": int(distribution.get("medium", 0)),
        "weak": int(distribution.get("weak", 0)),
        "at_risk": int(distribution.get("at_risk", 0)),
        "total": _distribution_total(distribution),
        "engagement_rate": engagement_rate,
        "strong_percentage": _strong_share(distribution),
    }


def analyze_engagement_quality(points: Iterable[tuple[date, Mapping[str, Any], float]]) -> dict[str, Any]:
    """Relationship-quality breakdown over ``(day, distribution, engagement_rate)`` points, oldest first."""
    points = sorted(points, key=lambda point: point[0])
    result: dict[str, Any] = {
        "summary": {
            "total_contacts": 0,
            "strong": 0,
            "medium": 0,
            "weak": 0,
            "at_risk": 0,
            "average_engagement_rate": 0.0,
            "quality_trend": "stable",
        },
        "daily": [],
        "weekly": [],
        "insights": [],
    }
    if not points:
        return result

    first_distribution = points[0][1]
    _, latest_distribution, _ = points[-1]
    average_engagement = sum(rate for _, _, rate in points) / len(points)
    trend = quality_trend(first_distribution, latest_distribution)
    result["summary"] = {
        "total_contacts": _distribution_total(latest_distribution),
        "strong": int(latest_distribution.get("strong", 0)),
        "medium": int(latest_distribution.get("medium", 0)),
        "weak": int(latest_distribution.get("weak", 0)),
        "at_risk": int(latest_distribution.get("at_risk", 0)),
        "average_engagement_rate": average_engagement,
        "quality_trend": trend,
    }
    result["daily"] = [_quality_point(day, distribution, rate) for day, distribution, rate in points]

    # Each weekly bucket keeps the peak of every strength and the mean engagement rate.
    weeks: dict[date, dict[str, Any]] = {}
    for day, distribution, rate in points:
        bucket = weeks.setdefault(
            _week_start(day), {"strong": 0, "medium": 0, "weak": 0, "at_risk": 0, "rates": []}
        )
        for key in ("strong", "medium", "weak", "at_risk"):
            bucket[key] = max(bucket[key], int(distribution.get(key, 0)))
        bucket["rates"].append(rate)
    result["weekly"] = [
        _quality_point(week, bucket, sum(bucket["rates"]) / len(bucket["rates"]))
        for week, bucket in sorted(weeks.items())
    ]

    insights: list[Insight] = []
    strong_share = _strong_share(latest_distribution)
    if strong_share > EXCELLENT_STRONG_SHARE:
        insights.append(
            Insight(
                type="excellent",
                title="Excellent Network Quality",
                message=f"{strong_share:.1f}% of your contacts are strong relationships. You have a high-quality network!",
                recommendation="Continue nurturing these relationships and consider expanding your network.",
                impact="high",
            )
        )
    elif strong_share > GOOD_STRONG_SHARE:
        insights.append(
            Insight(
                type="good",
                title="Good Network Quality",
                message=f"{strong_share:.1f}% of your contacts are strong relationships.",
                recommendation="Focus on strengthening moderate relationships to improve overall network quality.",
            )
        )
    else:
        insights.append(
            Insight(
                type="needs-improvement",
                title="Network Quality Needs Improvement",
                message=f"Only {strong_share:.1f}% of your contacts are strong relationships.",
                recommendation="Prioritize building deeper connections with existing contacts before adding new ones.",
                impact="high",
            )
        )

    if trend == "improving":
        insights.append(
            Insight(
                type="success",
                title="Improving Quality Trend",
                message="Your network quality is improving over time.",
                recommendation="Keep up the great work! Continue investing in relationship building.",
            )
        )
    elif trend == "declining":
        insights.append(
            Insight(
                type="warning",
                title="Declining Quality Trend",
                message="Your network quality has declined recently.",
                recommendation="Focus on reconnecting with existing contacts and strengthening relationships.",
                impact="high",
            )
        )

    if average_engagement < LOW_AVERAGE_ENGAGEMENT:
        insights.append(
            Insight(
                type="warning",
                title="Low Engagement Rate",
                message=f"Your engagement rate is {average_engagement:.1f}%.",
                recommendation="Increase regular communication with your contacts to improve relationship quality.",
                impact="high",
            )
        )

    result["insights"] = insights
    return result
