from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from rapport.core.errors import AnalyticsStoreError
from rapport.db.pg.models import Contact, Interaction
from rapport.db.pg.queries import count_snapshots, get_snapshot
from rapport.db.pg.session import SessionLocal
from rapport.services.analytics import daily
from rapport.services.analytics.daily import (
    backfill_user_analytics,
    generate_analytics_for_all_users,
    generate_daily_analytics,
    get_growth_trends,
    get_latest_snapshot,
    snapshot_to_dict,
)
from rapport.tests.support import reset_db

DAY = date(2026, 3, 1)


def _at(month: int, day: int, hour: int = 0) -> datetime:
    return datetime(2026, month, day, hour, 0, tzinfo=timezone.utc)


def _seed_network() -> None:
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(
                    contact_id="c1",
                    owner_user_id="user-1",
                    full_name="Ada Strong",
                    relationship_strength="Strong",
                    last_contacted=_at(2, 25),
                    created_at=_at(2, 1),
                ),
                Contact(
                    contact_id="c2",
                    owner_user_id="user-1",
                    full_name="Bo Weak",
                    relationship_strength="Weak",
                    created_at=_at(2, 10),
                ),
                Contact(
                    contact_id="c3",
                    owner_user_id="user-1",
                    full_name="Cy New",
                    relationship_strength="Medium",
                    last_contacted=_at(3, 1, 11),
                    created_at=_at(3, 1, 10),
                ),
                Contact(
                    contact_id="c4",
                    owner_user_id="user-1",
                    full_name="Di Later",
                    relationship_strength="At-Risk",
                    created_at=_at(3, 3),
                ),
                Contact(
                    contact_id="c5",
                    owner_user_id="user-2",
                    full_name="Other Owner",
                    created_at=_at(2, 1),
                ),
            ]
        )
        db.add_all(
            [
                Interaction(
                    interaction_id="i1",
                    contact_id="c1",
                    owner_user_id="user-1",
                    type="Email",
                    outcome="Positive",
                    occurred_at=_at(2, 25),
                ),
                Interaction(
                    interaction_id="i2",
                    contact_id="c3",
                    owner_user_id="user-1",
                    type="Coffee",
                    outcome="Follow-up needed",
                    occurred_at=_at(3, 1, 11),
                    follow_up_required=True,
                    follow_up_date=_at(3, 1, 18),
                ),
                Interaction(
                    interaction_id="i3",
                    contact_id="c3",
                    owner_user_id="user-1",
                    type="Call",
                    outcome="Neutral",
                    occurred_at=_at(3, 1, 12),
                    follow_up_required=True,
                    follow_up_date=_at(3, 5),
                ),
                Interaction(
                    interaction_id="i4",
                    contact_id="c1",
                    owner_user_id="user-1",
                    type="Email",
                    outcome="Positive",
                    occurred_at=_at(3, 2, 9),
                ),
            ]
        )
        db.commit()
    finally:
        db.close()


def test_daily_snapshot_reflects_network_as_of_day_end() -> None:
    reset_db()
    _seed_network()

    db = SessionLocal()
    try:
        snapshot = generate_daily_analytics(db, "user-1", DAY, processed_at=_at(3, 2, 1))
    finally:
        db.close()

    assert snapshot.contact_growth_json == {"total": 3, "new": 1, "removed": 0, "net": 1}
    metrics = snapshot.interaction_metrics_json
    assert metrics["total"] == 3
    assert metrics["new"] == 2
    assert metrics["by_type"]["coffee"] == 1
    assert metrics["by_type"]["call"] == 1
    assert metrics["by_type"]["email"] == 0
    assert set(metrics["by_type"]) == {
        "email", "call", "message", "meeting", "coffee", "lunch", "conference", "referral", "other"
    }
    assert metrics["by_outcome"] == {
        "positive": 0,
        "neutral": 1,
        "negative": 0,
        "follow_up_needed": 1,
        "action_required": 0,
    }
    assert snapshot.relationship_distribution_json == {"strong": 1, "medium": 1, "weak": 1, "at_risk": 0}

    engagement = snapshot.engagement_metrics_json
    assert engagement["active_contacts"] == 2
    assert engagement["engagement_rate"] == pytest.approx(200 / 3)
    assert engagement["average_interactions_per_contact"] == pytest.approx(1.0)

    assert snapshot.follow_up_metrics_json == {"scheduled": 2, "completed": 1}
    assert snapshot.growth_trends_json == {
        "contact_growth_rate": 0.0,
        "interaction_growth_rate": 0.0,
        "engagement_growth_rate": 0.0,
    }

    insights = snapshot.ai_insights_json
    assert insights["network_health_score"] == pytest.approx(200 / 3)
    assert [item["type"] for item in insights["recommendations"]] == ["Add Contacts"]
    assert insights["risk_factors"] == []


def test_recomputing_a_day_is_idempotent_except_processed_at() -> None:
    reset_db()
    _seed_network()

    db = SessionLocal()
    try:
        first = snapshot_to_dict(generate_daily_analytics(db, "user-1", DAY, processed_at=_at(3, 2, 1)))
        second = snapshot_to_dict(generate_daily_analytics(db, "user-1", DAY, processed_at=_at(3, 2, 5)))
        assert count_snapshots(db, "user-1") == 1
    finally:
        db.close()

    assert first.pop("processed_at") != second.pop("processed_at")
    assert first == second


def test_growth_rates_compare_against_previous_day() -> None:
    reset_db()
    _seed_network()

    db = SessionLocal()
    try:
        previous = generate_daily_analytics(db, "user-1", DAY - timedelta(days=1))
        assert previous.contact_growth_json["total"] == 2
        assert previous.engagement_metrics_json["engagement_rate"] == pytest.approx(50.0)

        snapshot = generate_daily_analytics(db, "user-1", DAY)
    finally:
        db.close()

    growth = snapshot.growth_trends_json
    assert growth["contact_growth_rate"] == pytest.approx(50.0)
    assert growth["interaction_growth_rate"] == pytest.approx(200.0)
    assert growth["engagement_growth_rate"] == pytest.approx(200 / 3 - 50)


def test_growth_is_zero_when_previous_day_was_empty() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add(
            Contact(
                contact_id="c1",
                owner_user_id="user-1",
                full_name="First Contact",
                last_contacted=_at(3, 1, 9),
                created_at=_at(3, 1, 8),
            )
        )
        db.commit()

        previous = generate_daily_analytics(db, "user-1", DAY - timedelta(days=1))
        snapshot = generate_daily_analytics(db, "user-1", DAY)
    finally:
        db.close()

    assert previous.contact_growth_json["total"] == 0
    assert previous.engagement_metrics_json["engagement_rate"] == 0.0
    assert snapshot.contact_growth_json["total"] == 1
    assert snapshot.growth_trends_json == {
        "contact_growth_rate": 0.0,
        "interaction_growth_rate": 0.0,
        "engagement_growth_rate": 0.0,
    }


def test_low_engagement_and_at_risk_contacts_are_flagged() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(
                    contact_id=f"c{index}",
                    owner_user_id="user-1",
                    full_name=f"Contact {index}",
                    relationship_strength="At-Risk" if index < 2 else "Medium",
                    last_contacted=_at(1, 2),
                    created_at=_at(1, 1),
                )
                for index in range(4)
            ]
        )
        db.commit()
        snapshot = generate_daily_analytics(db, "user-1", DAY)
    finally:
        db.close()

    insights = snapshot.ai_insights_json
    assert snapshot.engagement_metrics_json["engagement_rate"] == 0.0
    assert [item["type"] for item in insights["recommendations"]] == ["Increase Engagement", "Add Contacts"]
    assert insights["recommendations"][0]["priority"] == "High"
    assert [item["severity"] for item in insights["risk_factors"]] == ["High", "Critical"]


def test_read_failure_raises_store_error_and_writes_nothing(monkeypatch) -> None:
    reset_db()
    _seed_network()

    def _broken(*args, **kwargs):
        raise OperationalError("SELECT count(*) FROM contacts", {}, Exception("database is locked"))

    monkeypatch.setattr(daily, "count_active_contacts", _broken)

    db = SessionLocal()
    try:
        with pytest.raises(AnalyticsStoreError):
            generate_daily_analytics(db, "user-1", DAY)
        assert get_snapshot(db, "user-1", DAY) is None
    finally:
        db.close()


def test_backfill_generates_oldest_first_and_feeds_trends() -> None:
    reset_db()
    _seed_network()

    db = SessionLocal()
    try:
        snapshots = backfill_user_analytics(db, "user-1", days=3, end_day=DAY)
        assert [snapshot.day for snapshot in snapshots] == [date(2026, 2, 27), date(2026, 2, 28), DAY]
        assert snapshots[-1].growth_trends_json["contact_growth_rate"] == pytest.approx(50.0)

        latest = get_latest_snapshot(db, "user-1")
        assert latest is not None and latest.day == DAY

        trends = get_growth_trends(db, "user-1", period_days=3, end_day=DAY)
    finally:
        db.close()

    assert [item["day"] for item in trends["snapshots"]] == [date(2026, 2, 27), date(2026, 2, 28), DAY]
    summary = trends["summary"]
    assert summary["snapshot_count"] == 3
    assert summary["total_contacts"] == 3
    assert summary["new_interactions"] == 2
    assert summary["average_engagement_rate"] == pytest.approx((50 + 50 + 200 / 3) / 3)


def test_generate_for_all_users_covers_every_contact_owner() -> None:
    reset_db()
    _seed_network()

    db = SessionLocal()
    try:
        result = generate_analytics_for_all_users(db, DAY)
        assert result == {"generated": 2, "failed": 0}
        assert get_snapshot(db, "user-2", DAY) is not None
    finally:
        db.close()


def test_write_failure_is_retryable_and_batch_continues(monkeypatch) -> None:
    reset_db()
    _seed_network()
    real_upsert = daily.upsert_snapshot

    def _flaky_upsert(db, user_id, day, values):
        if user_id == "user-1":
            raise OperationalError("INSERT INTO analytics_snapshots", {}, Exception("disk I/O error"))
        return real_upsert(db, user_id, day, values)

    monkeypatch.setattr(daily, "upsert_snapshot", _flaky_upsert)

    db = SessionLocal()
    try:
        with pytest.raises(AnalyticsStoreError):
            generate_daily_analytics(db, "user-1", DAY)

        result = generate_analytics_for_all_users(db, DAY)
        assert result == {"generated": 1, "failed": 1}
        assert get_snapshot(db, "user-1", DAY) is None
        assert get_snapshot(db, "user-2", DAY) is not None
    finally:
        db.close()
