from __future__ import annotations

from datetime import timedelta

import pytest

from rapport.db.pg.models import Contact, Interaction
from rapport.db.pg.session import SessionLocal
from rapport.services.contacts.activity import rank_priority_contacts, record_interaction
from rapport.services.scoring.networking_score import (
    NetworkingInputs,
    collect_networking_inputs,
    compute_networking_score,
    round_half_up,
    score_category,
)
from rapport.services.scoring.priority_score import compute_priority, compute_risk_factor
from rapport.services.scoring.strength import derive_relationship_strength, refresh_relationship_strengths
from rapport.tests.support import NOW, reset_db


def test_risk_factor_for_weak_stale_untouched_contact() -> None:
    assert compute_risk_factor("Weak", 70, 0) == 95


def test_risk_and_priority_stay_in_bounds() -> None:
    for strength in ("Weak", "Medium", "Strong", "At-Risk", "Unknown"):
        for days in (None, 0, 1, 15, 31, 46, 61, 400):
            for count in (0, 1, 12):
                assert 0 <= compute_risk_factor(strength, days, count) <= 100
                assert 0 <= compute_priority(strength, days, count) <= 5


def test_at_risk_tier_and_same_day_contact_add_no_risk() -> None:
    assert compute_risk_factor("At-Risk", 20, 3) == 10
    assert compute_risk_factor("Strong", 0, 3) == 5
    assert compute_risk_factor("Strong", None, 3) == 5


def test_priority_rules() -> None:
    assert compute_priority("Weak", 70, 0) == 5
    assert compute_priority("Medium", 31, 2) == 4
    assert compute_priority("Strong", 20, 2) == 2
    assert compute_priority("At-Risk", None, 1) == 1


def test_empty_account_has_defined_score() -> None:
    score = compute_networking_score(NetworkingInputs())

    assert score.component("relationship_quality").score == 0
    assert score.component("follow_up_effectiveness").score == 5
    assert score.overall == 5
    assert score.category == "Poor"


def test_saturated_account_scores_one_hundred() -> None:
    score = compute_networking_score(
        NetworkingInputs(
            total_contacts=80,
            strong_contacts=80,
            interactions_last_30d=40,
            months_with_activity=12,
            distinct_channels=7,
            follow_ups_required=4,
            follow_ups_completed=4,
        )
    )

    assert score.overall == 100
    assert score.category == "Excellent"
    for component in score.components:
        assert component.score == component.max_score


def test_overall_is_rounded_sum_of_components() -> None:
    score = compute_networking_score(
        NetworkingInputs(
            total_contacts=13,
            strong_contacts=4,
            interactions_last_30d=7,
            months_with_activity=2,
            distinct_channels=3,
            follow_ups_required=3,
            follow_ups_completed=1,
        )
    )

    assert sum(component.max_score for component in score.components) == 100
    assert score.overall == round_half_up(min(100, sum(component.score for component in score.components)))


def test_components_are_monotonic_in_their_inputs() -> None:
    base = NetworkingInputs(total_contacts=10, strong_contacts=2, interactions_last_30d=3, months_with_activity=1)
    grown = NetworkingInputs(total_contacts=20, strong_contacts=4, interactions_last_30d=9, months_with_activity=3)

    before = compute_networking_score(base)
    after = compute_networking_score(grown)

    for name in ("network_size", "activity_level", "consistency"):
        assert after.component(name).score >= before.component(name).score
    assert after.overall >= before.overall


def test_negative_inputs_are_treated_as_zero() -> None:
    score = compute_networking_score(
        NetworkingInputs(total_contacts=-3, strong_contacts=-1, interactions_last_30d=-5, follow_ups_completed=-2)
    )

    assert all(0 <= component.score <= component.max_score for component in score.components)


@pytest.mark.parametrize(
    ("overall", "category"),
    [(100, "Excellent"), (80, "Excellent"), (79, "Good"), (60, "Good"), (59, "Fair"), (40, "Fair"), (39, "Poor")],
)
def test_score_categories(overall: int, category: str) -> None:
    assert score_category(overall) == category


def test_collect_networking_inputs_from_store() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(contact_id="c1", owner_user_id="user-1", full_name="Ann", relationship_strength="Strong"),
                Contact(contact_id="c2", owner_user_id="user-1", full_name="Ben", relationship_strength="Weak"),
                Interaction(
                    contact_id="c1",
                    owner_user_id="user-1",
                    type="Email",
                    occurred_at=NOW - timedelta(days=3),
                    follow_up_required=True,
                    follow_up_date=NOW - timedelta(days=1),
                ),
                Interaction(
                    contact_id="c2",
                    owner_user_id="user-1",
                    type="Call",
                    occurred_at=NOW - timedelta(days=70),
                    follow_up_required=True,
                    follow_up_date=NOW + timedelta(days=2),
                ),
            ]
        )
        db.commit()

        inputs = collect_networking_inputs(db, "user-1", NOW)
    finally:
        db.close()

    assert inputs == NetworkingInputs(
        total_contacts=2,
        strong_contacts=1,
        interactions_last_30d=1,
        months_with_activity=2,
        distinct_channels=2,
        follow_ups_required=2,
        follow_ups_completed=1,
    )


def test_strength_rule_thresholds() -> None:
    assert derive_relationship_strength("Weak", None) == "Weak"
    assert derive_relationship_strength("Weak", 0) == "Strong"
    assert derive_relationship_strength("Weak", 5) == "Strong"
    assert derive_relationship_strength("Strong", 6) == "Medium"
    assert derive_relationship_strength("Strong", 15) == "Medium"
    assert derive_relationship_strength("Strong", 16) == "Weak"
    assert derive_relationship_strength("Strong", 45) == "Weak"
    assert derive_relationship_strength("Strong", 46) == "At-Risk"


def test_refresh_strengths_only_touches_changed_contacts() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(
                    contact_id="recent",
                    owner_user_id="user-1",
                    full_name="Recent",
                    relationship_strength="Weak",
                    last_contacted=NOW - timedelta(days=2),
                ),
                Contact(
                    contact_id="stale",
                    owner_user_id="user-1",
                    full_name="Stale",
                    relationship_strength="Medium",
                    last_contacted=NOW - timedelta(days=90),
                ),
                Contact(contact_id="never", owner_user_id="user-1", full_name="Never", relationship_strength="Medium"),
            ]
        )
        db.commit()

        result = refresh_relationship_strengths(db, "user-1", NOW)
        strengths = {
            contact_id: db.get(Contact, contact_id, populate_existing=True).relationship_strength
            for contact_id in ("recent", "stale", "never")
        }
    finally:
        db.close()

    assert result == {"total_contacts": 3, "updated_count": 2}
    assert strengths == {"recent": "Strong", "stale": "At-Risk", "never": "Medium"}


def test_record_interaction_caps_recent_refs_and_ranks_contacts() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(contact_id="busy", owner_user_id="user-1", full_name="Busy", relationship_strength="Strong"),
                Contact(
                    contact_id="cold",
                    owner_user_id="user-1",
                    full_name="Cold",
                    relationship_strength="Weak",
                    last_contacted=NOW - timedelta(days=70),
                ),
            ]
        )
        db.commit()

        created = [
            record_interaction(
                db,
                user_id="user-1",
                contact_id="busy",
                interaction_type="Meeting",
                occurred_at=NOW - timedelta(days=7 - index),
            )
            for index in range(7)
        ]
        busy = db.get(Contact, "busy", populate_existing=True)
        assert busy.recent_interaction_ids_json == [item.interaction_id for item in created[-5:]]
        assert busy.last_contacted is not None

        ranked = rank_priority_contacts(db, "user-1", now=NOW)
    finally:
        db.close()

    assert [item.contact_id for item in ranked] == ["cold", "busy"]
    assert ranked[0].risk_factor == 95
    assert ranked[0].priority == 5
    assert ranked[1].interaction_count == 7
