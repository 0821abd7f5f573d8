from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from rapport.api.v1.deps import get_current_user_id, get_db
from rapport.api.v1.schemas import (
    ContactScoreDetailResponse,
    ContactScoreItem,
    NetworkingScoreResponse,
    ScoreComponentOut,
    SuggestedActionOut,
)
from rapport.core.clock import utcnow
from rapport.core.errors import ContactNotFoundError
from rapport.services.contacts.activity import rank_priority_contacts, score_user_contact
from rapport.services.insights.generator import COMPONENT_RECOMMENDATIONS, suggest_contact_actions
from rapport.services.scoring.networking_score import MAX_SCORE, compute_user_networking_score
from rapport.services.scoring.priority_score import ContactScore

router = APIRouter(prefix="/scores", tags=["scores"])


def _score_item(score: ContactScore) -> dict:
    return {
        "contact_id": score.contact_id,
        "full_name": score.full_name,
        "company": score.company,
        "relationship_strength": score.relationship_strength,
        "last_contacted": score.last_contacted,
        "days_since_contact": score.days_since_contact,
        "interaction_count": score.interaction_count,
        "risk_factor": score.risk_factor,
        "priority": score.priority,
    }


@router.get("/networking", response_model=NetworkingScoreResponse)
def networking_score(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> NetworkingScoreResponse:
    now = utcnow()
    score = compute_user_networking_score(db, user_id, now)
    recommendations = [
        text for name, threshold, text in COMPONENT_RECOMMENDATIONS if score.component(name).rounded < threshold
    ]
    return NetworkingScoreResponse(
        overall_score=score.overall,
        max_score=MAX_SCORE,
        category=score.category,
        components=[
            ScoreComponentOut(
                name=component.name,
                score=component.rounded,
                raw_score=round(component.score, 4),
                max_score=int(component.max_score),
                description=component.description,
                details=component.details,
            )
            for component in score.components
        ],
        recommendations=recommendations,
        calculated_at=now,
    )


@router.get("/contacts", response_model=list[ContactScoreItem])
def priority_contacts(
    limit: int = Query(default=5, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> list[ContactScoreItem]:
    return [ContactScoreItem(**_score_item(score)) for score in rank_priority_contacts(db, user_id, limit=limit)]


@router.get("/contacts/{contact_id}", response_model=ContactScoreDetailResponse)
def contact_score_detail(
    contact_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ContactScoreDetailResponse:
    try:
        score = score_user_contact(db, user_id, contact_id)
    except ContactNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    actions = suggest_contact_actions(score)
    return ContactScoreDetailResponse(
        **_score_item(score),
        suggested_actions=[
            SuggestedActionOut(action=item.action, priority=item.priority, reason=item.reason)
            for item in actions.suggested_actions
        ],
        priority_actions=actions.priority_actions,
        explanation=actions.explanation,
    )
