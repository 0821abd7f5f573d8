from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from rapport.core.clock import utcnow
from rapport.db.pg.models import Contact, Interaction
from rapport.db.pg.session import SessionLocal
from rapport.main import app
from rapport.services.analytics import daily
from rapport.tests.support import reset_db


client = TestClient(app)
HEADERS = {"X-User-Id": "user-1"}


def _seed_contacts() -> None:
    now = utcnow()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(
                    contact_id="c1",
                    owner_user_id="user-1",
                    full_name="Ann Active",
                    relationship_strength="Strong",
                    last_contacted=now - timedelta(days=2),
                    created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
                ),
                Contact(
                    contact_id="c2",
                    owner_user_id="user-1",
                    full_name="Ben Quiet",
                    relationship_strength="Weak",
                    created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
                ),
            ]
        )
        db.commit()
    finally:
        db.close()


def test_latest_snapshot_is_404_before_first_run() -> None:
    reset_db()

    response = client.get("/v1/analytics/latest", headers=HEADERS)

    assert response.status_code == 404


def test_daily_run_then_latest_and_trends() -> None:
    reset_db()
    _seed_contacts()
    today = utcnow().date()

    run = client.post("/v1/analytics/daily", json={"day": today.isoformat()}, headers=HEADERS)
    assert run.status_code == 200
    snapshot = run.json()
    assert snapshot["day"] == today.isoformat()
    assert snapshot["contact_growth"]["total"] == 2
    assert snapshot["relationship_distribution"]["strong"] == 1
    assert snapshot["engagement_metrics"]["engagement_rate"] == 50.0

    latest = client.get("/v1/analytics/latest", headers=HEADERS)
    assert latest.status_code == 200
    assert latest.json()["day"] == today.isoformat()

    trends = client.get("/v1/analytics/trends", params={"period_days": 7}, headers=HEADERS)
    assert trends.status_code == 200
    assert trends.json()["summary"]["snapshot_count"] == 1
    assert trends.json()["summary"]["total_contacts"] == 2


def test_daily_run_without_body_uses_today() -> None:
    reset_db()
    _seed_contacts()

    response = client.post("/v1/analytics/daily", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["day"] == utcnow().date().isoformat()


def test_store_failure_maps_to_503(monkeypatch) -> None:
    reset_db()
    _seed_contacts()

    def _broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(daily, "count_contacts", _broken)

    response = client.post("/v1/analytics/daily", json={}, headers=HEADERS)

    assert response.status_code == 503


def test_insights_combine_score_and_latest_snapshot() -> None:
    reset_db()
    _seed_contacts()
    client.post("/v1/analytics/daily", json={}, headers=HEADERS)

    response = client.get("/v1/analytics/insights", headers=HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert payload["category"] == "Poor"
    assert payload["snapshot_day"] == utcnow().date().isoformat()
    titles = [item["title"] for item in payload["insights"]]
    assert titles[0] == "Small Network"
    assert "Network Quality Needs Improvement" not in titles
    assert "Good Network Quality" in titles


def _seed_interactions() -> None:
    now = utcnow()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Interaction(
                    contact_id="c1",
                    owner_user_id="user-1",
                    type="Email",
                    outcome="Neutral",
                    occurred_at=now - timedelta(days=5),
                    follow_up_required=True,
                    follow_up_date=now - timedelta(days=1),
                ),
                Interaction(
                    contact_id="c1",
                    owner_user_id="user-1",
                    type="Call",
                    outcome="Positive",
                    occurred_at=now - timedelta(days=3),
                ),
                Interaction(
                    contact_id="c1",
                    owner_user_id="user-1",
                    type="Meeting",
                    outcome="Positive",
                    occurred_at=now - timedelta(days=90),
                ),
            ]
        )
        db.commit()
    finally:
        db.close()


def test_follow_up_and_channel_breakdowns_cover_trailing_period() -> None:
    reset_db()
    _seed_contacts()
    _seed_interactions()

    follow_ups = client.get("/v1/analytics/follow_ups", params={"period_days": 30}, headers=HEADERS)
    assert follow_ups.status_code == 200
    payload = follow_ups.json()
    assert payload["metrics"] == {
        "total": 1,
        "completed": 1,
        "effective": 0,
        "overdue": 1,
        "completion_rate": 100,
        "effectiveness_rate": 0,
    }
    assert [item["title"] for item in payload["insights"]] == ["Low Follow-up Effectiveness", "Overdue Follow-ups"]

    channels = client.get("/v1/analytics/channels", params={"period_days": 30}, headers=HEADERS)
    assert channels.status_code == 200
    payload = channels.json()
    assert payload["total_interactions"] == 2
    assert payload["percentages"]["email"] == 50
    assert payload["percentages"]["meeting"] == 0
    assert payload["primary_channel"] == "email"


def test_engagement_quality_reads_recent_snapshots() -> None:
    reset_db()
    _seed_contacts()
    client.post("/v1/analytics/daily", json={}, headers=HEADERS)

    response = client.get("/v1/analytics/engagement_quality", params={"period_days": 7}, headers=HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert payload["summary"]["total_contacts"] == 2
    assert payload["summary"]["strong"] == 1
    assert payload["summary"]["quality_trend"] == "stable"
    assert len(payload["daily"]) == 1
    assert [item["title"] for item in payload["insights"]] == ["Good Network Quality"]
