from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from rapport.core.clock import days_since
from rapport.db.pg.models import STRENGTH_MEDIUM, STRENGTH_STRONG, STRENGTH_WEAK, Contact

RISK_MAX = 100
PRIORITY_MAX = 5

_RISK_BY_STRENGTH = {STRENGTH_WEAK: 40, STRENGTH_MEDIUM: 20, STRENGTH_STRONG: 5}
_PRIORITY_BY_STRENGTH = {STRENGTH_WEAK: 3, STRENGTH_MEDIUM: 2}


def compute_risk_factor(relationship_strength: str, days_since_contact: int | None, interaction_count: int) -> int:
    """Likelihood (0-100) that a relationship is decaying.

    Unknown tiers (including At-Risk) add nothing for strength. A contact never reached,
    or reached today, adds nothing for recency.
    """
    risk = _RISK_BY_STRENGTH.get(relationship_strength, 0)

    if days_since_contact:
        if days_since_contact > 60:
            risk += 30
        elif days_since_contact > 30:
            risk += 20
        elif days_since_contact > 14:
            risk += 10

    if interaction_count <= 0:
        risk += 25

    return max(0, min(RISK_MAX, risk))


def compute_priority(relationship_strength: str, days_since_contact: int | None, interaction_count: int) -> int:
    priority = _PRIORITY_BY_STRENGTH.get(relationship_strength, 1)

    if days_since_contact:
        if days_since_contact > 45:
            priority += 3
        elif days_since_contact > 30:
            priority += 2
        elif days_since_contact > 14:
            priority += 1

    if interaction_count <= 0:
        priority += 2

    return max(0, min(PRIORITY_MAX, priority))


@dataclass(frozen=True)
class ContactScore:
    contact_id: str
    full_name: str
    company: str | None
    relationship_strength: str
    last_contacted: datetime | None
    days_since_contact: int | None
    interaction_count: int
    risk_factor: int
    priority: int


def score_contact(contact: Contact, now: datetime, interaction_count: int | None = None) -> ContactScore:
    if interaction_count is None:
        interaction_count = len(contact.recent_interaction_ids_json or [])
    elapsed = days_since(contact.last_contacted, now)
    return ContactScore(
        contact_id=contact.contact_id,
        full_name=contact.full_name,
        company=contact.company,
        relationship_strength=contact.relationship_strength,
        last_contacted=contact.last_contacted,
        days_since_contact=elapsed,
        interaction_count=interaction_count,
        risk_factor=compute_risk_factor(contact.relationship_strength, elapsed, interaction_count),
        priority=compute_priority(contact.relationship_strength, elapsed, interaction_count),
    )
