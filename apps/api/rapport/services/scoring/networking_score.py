"""Account-wide networking score built from six weighted components.

Each component saturates at its weight and the weights sum to 100. Every ratio is guarded
so empty accounts score zero (or the neutral follow-up default) instead of NaN.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from rapport.core.clock import as_utc, utcnow
from rapport.db.pg.models import STRENGTH_STRONG
from rapport.db.pg.queries import list_user_contacts, list_user_interactions

MAX_SCORE = 100

NETWORK_SIZE_WEIGHT = 20.0
RELATIONSHIP_QUALITY_WEIGHT = 25.0
ACTIVITY_LEVEL_WEIGHT = 20.0
CONSISTENCY_WEIGHT = 15.0
CHANNEL_DIVERSITY_WEIGHT = 10.0
FOLLOW_UP_WEIGHT = 10.0

NETWORK_SIZE_TARGET = 50
ACTIVITY_TARGET_30D = 20
CONSISTENCY_TARGET_MONTHS = 6
CHANNEL_TARGET = 5


@dataclass(frozen=True)
class NetworkingInputs:
    total_contacts: int = 0
    strong_contacts: int = 0
    interactions_last_30d: int = 0
    months_with_activity: int = 0
    distinct_channels: int = 0
    follow_ups_required: int = 0
    follow_ups_completed: int = 0


@dataclass(frozen=True)
class ScoreComponent:
    name: str
    score: float
    max_score: float
    description: str
    details: str

    @property
    def rounded(self) -> int:
        return round_half_up(self.score)


@dataclass(frozen=True)
class NetworkingScore:
    overall: int
    category: str
    components: list[ScoreComponent] = field(default_factory=list)

    def component(self, name: str) -> ScoreComponent:
        for component in self.components:
            if component.name == name:
                return component
        raise KeyError(name)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _saturate(value: float, weight: float) -> float:
    return max(0.0, min(weight, value))


def _ratio(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return max(numerator, 0) / denominator


def score_category(overall: int) -> str:
    if overall >= 80:
        return "Excellent"
    if overall >= 60:
        return "Good"
    if overall >= 40:
        return "Fair"
    return "Poor"


def compute_networking_score(inputs: NetworkingInputs) -> NetworkingScore:
    total_contacts = max(inputs.total_contacts, 0)
    required = max(inputs.follow_ups_required, 0)
    completed = min(max(inputs.follow_ups_completed, 0), required)

    if required > 0:
        follow_up = _saturate(completed / required * FOLLOW_UP_WEIGHT, FOLLOW_UP_WEIGHT)
    else:
        follow_up = FOLLOW_UP_WEIGHT / 2

    components = [
        ScoreComponent(
            name="network_size",
            score=_saturate(_ratio(total_contacts, NETWORK_SIZE_TARGET) * NETWORK_SIZE_WEIGHT, NETWORK_SIZE_WEIGHT),
            max_score=NETWORK_SIZE_WEIGHT,
            description="Network size and reach",
            details=f"{total_contacts} contacts",
        ),
        ScoreComponent(
            name="relationship_quality",
            score=_saturate(
                _ratio(inputs.strong_contacts, total_contacts) * RELATIONSHIP_QUALITY_WEIGHT,
                RELATIONSHIP_QUALITY_WEIGHT,
            ),
            max_score=RELATIONSHIP_QUALITY_WEIGHT,
            description="Quality of relationships",
            details=f"{max(inputs.strong_contacts, 0)}/{total_contacts} strong relationships",
        ),
        ScoreComponent(
            name="activity_level",
            score=_saturate(
                _ratio(inputs.interactions_last_30d, ACTIVITY_TARGET_30D) * ACTIVITY_LEVEL_WEIGHT,
                ACTIVITY_LEVEL_WEIGHT,
            ),
            max_score=ACTIVITY_LEVEL_WEIGHT,
            description="Recent activity level",
            details=f"{max(inputs.interactions_last_30d, 0)} interactions in last 30 days",
        ),
        ScoreComponent(
            name="consistency",
            score=_saturate(
                _ratio(inputs.months_with_activity, CONSISTENCY_TARGET_MONTHS) * CONSISTENCY_WEIGHT,
                CONSISTENCY_WEIGHT,
            ),
            max_score=CONSISTENCY_WEIGHT,
            description="Consistency over time",
            details=f"{max(inputs.months_with_activity, 0)} months with activity",
        ),
        ScoreComponent(
            name="channel_diversity",
            score=_saturate(
                _ratio(inputs.distinct_channels, CHANNEL_TARGET) * CHANNEL_DIVERSITY_WEIGHT,
                CHANNEL_DIVERSITY_WEIGHT,
            ),
            max_score=CHANNEL_DIVERSITY_WEIGHT,
            description="Communication channel diversity",
            details=f"{max(inputs.distinct_channels, 0)} different channels used",
        ),
        ScoreComponent(
            name="follow_up_effectiveness",
            score=follow_up,
            max_score=FOLLOW_UP_WEIGHT,
            description="Follow-up completion rate",
            details=f"{completed}/{required} follow-ups completed",
        ),
    ]

    overall = round_half_up(min(MAX_SCORE, sum(component.score for component in components)))
    return NetworkingScore(overall=overall, category=score_category(overall), components=components)


def collect_networking_inputs(db: Session, user_id: str, now: datetime | None = None) -> NetworkingInputs:
    now = as_utc(now or utcnow())
    thirty_days_ago = now - timedelta(days=30)

    contacts = list_user_contacts(db, user_id)
    interactions = list_user_interactions(db, user_id)

    occurred = [as_utc(interaction.occurred_at) for interaction in interactions]
    follow_ups = [interaction for interaction in interactions if interaction.follow_up_required]
    completed = [
        interaction
        for interaction in follow_ups
        if interaction.follow_up_date is not None and as_utc(interaction.follow_up_date) <= now
    ]

    return NetworkingInputs(
        total_contacts=len(contacts),
        strong_contacts=sum(1 for contact in contacts if contact.relationship_strength == STRENGTH_STRONG),
        interactions_last_30d=sum(1 for when in occurred if when > thirty_days_ago),
        months_with_activity=len({when.strftime("%Y-%m") for when in occurred}),
        distinct_channels=len({interaction.type for interaction in interactions}),
        follow_ups_required=len(follow_ups),
        follow_ups_completed=len(completed),
    )


def compute_user_networking_score(db: Session, user_id: str, now: datetime | None = None) -> NetworkingScore:
    return compute_networking_score(collect_networking_inputs(db, user_id, now))
