from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from rapport.api.v1.deps import get_current_user_id, get_db
from rapport.api.v1.schemas import InteractionIn, InteractionOut
from rapport.core.errors import ContactNotFoundError
from rapport.services.contacts.activity import record_interaction

router = APIRouter(prefix="/contacts", tags=["contacts"])
logger = logging.getLogger(__name__)


@router.post("/{contact_id}/interactions", response_model=InteractionOut, status_code=status.HTTP_201_CREATED)
def add_interaction(
    contact_id: str,
    payload: InteractionIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> InteractionOut:
    try:
        interaction = record_interaction(
            db,
            user_id=user_id,
            contact_id=contact_id,
            interaction_type=payload.type,
            outcome=payload.outcome,
            content=payload.content,
            duration_minutes=payload.duration_minutes,
            follow_up_required=payload.follow_up_required,
            follow_up_date=payload.follow_up_date,
            follow_up_notes=payload.follow_up_notes,
            occurred_at=payload.occurred_at,
        )
    except ContactNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    logger.info(
        "interaction_recorded",
        extra={"contact_id": contact_id, "interaction_id": interaction.interaction_id, "type": payload.type},
    )
    return InteractionOut.model_validate(interaction)
