from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from rapport.core.clock import as_utc, utcnow
from rapport.core.config import get_settings
from rapport.core.errors import ContactNotFoundError
from rapport.db.pg.models import Interaction
from rapport.db.pg.queries import get_user_contact, interaction_counts_by_contact, list_user_contacts
from rapport.services.scoring.priority_score import ContactScore, score_contact


def record_interaction(
    db: Session,
    *,
    user_id: str,
    contact_id: str,
    interaction_type: str,
    outcome: str = "Neutral",
    content: str | None = None,
    duration_minutes: int | None = None,
    follow_up_required: bool = False,
    follow_up_date: datetime | None = None,
    follow_up_notes: str | None = None,
    occurred_at: datetime | None = None,
) -> Interaction:
    contact = get_user_contact(db, user_id, contact_id)
    if contact is None:
        raise ContactNotFoundError(contact_id)

    when = as_utc(occurred_at or utcnow())
    interaction = Interaction(
        contact_id=contact_id,
        owner_user_id=user_id,
        type=interaction_type,
        outcome=outcome,
        content=content,
        duration_minutes=duration_minutes,
        follow_up_required=follow_up_required or follow_up_date is not None,
        follow_up_date=as_utc(follow_up_date) if follow_up_date else None,
        follow_up_notes=follow_up_notes,
        occurred_at=when,
    )
    db.add(interaction)
    db.flush()

    cap = get_settings().contact_recent_interactions_cap
    retained = [*(contact.recent_interaction_ids_json or []), interaction.interaction_id]
    contact.recent_interaction_ids_json = retained[-cap:]
    if contact.last_contacted is None or as_utc(contact.last_contacted) < when:
        contact.last_contacted = when
    db.commit()
    return interaction


def score_user_contact(db: Session, user_id: str, contact_id: str, *, now: datetime | None = None) -> ContactScore:
    contact = get_user_contact(db, user_id, contact_id)
    if contact is None:
        raise ContactNotFoundError(contact_id)
    counts = interaction_counts_by_contact(db, user_id)
    return score_contact(contact, as_utc(now or utcnow()), counts.get(contact_id, 0))


def rank_priority_contacts(db: Session, user_id: str, *, limit: int = 5, now: datetime | None = None) -> list[ContactScore]:
    now = as_utc(now or utcnow())
    counts = interaction_counts_by_contact(db, user_id)
    scored = [
        score_contact(contact, now, counts.get(contact.contact_id, 0)) for contact in list_user_contacts(db, user_id)
    ]
    scored.sort(key=lambda item: (-item.priority, -item.risk_factor, item.full_name, item.contact_id))
    return scored[:limit]
