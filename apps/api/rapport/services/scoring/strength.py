from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from rapport.core.clock import as_utc, days_since, utcnow
from rapport.core.config import Settings, get_settings
from rapport.db.pg.models import STRENGTH_AT_RISK, STRENGTH_MEDIUM, STRENGTH_STRONG, STRENGTH_WEAK
from rapport.db.pg.queries import list_user_contacts

logger = logging.getLogger(__name__)


def derive_relationship_strength(current: str, days_since_contact: int | None, settings: Settings | None = None) -> str:
    """The one recency rule for relationship strength. Never-contacted contacts keep their tier."""
    if days_since_contact is None:
        return current
    settings = settings or get_settings()
    if days_since_contact <= settings.strength_strong_max_days:
        return STRENGTH_STRONG
    if days_since_contact <= settings.strength_medium_max_days:
        return STRENGTH_MEDIUM
    if days_since_contact <= settings.strength_weak_max_days:
        return STRENGTH_WEAK
    return STRENGTH_AT_RISK


def refresh_relationship_strengths(db: Session, user_id: str, now: datetime | None = None) -> dict[str, int]:
    now = as_utc(now or utcnow())
    settings = get_settings()
    contacts = list_user_contacts(db, user_id)

    updated = 0
    for contact in contacts:
        derived = derive_relationship_strength(
            contact.relationship_strength,
            days_since(contact.last_contacted, now),
            settings,
        )
        if derived != contact.relationship_strength:
            logger.debug(
                "relationship_strength_changed",
                extra={"contact_id": contact.contact_id, "from": contact.relationship_strength, "to": derived},
            )
            contact.relationship_strength = derived
            updated += 1
    db.commit()

    logger.info("relationship_strengths_refreshed", extra={"user_id": user_id, "total": len(contacts), "updated": updated})
    return {"total_contacts": len(contacts), "updated_count": updated}
