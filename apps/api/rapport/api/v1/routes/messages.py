from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from rapport.api.v1.deps import get_current_user_id, get_db, get_scheduler
from rapport.api.v1.schemas import (
    CancelResponse,
    MessageIn,
    MessageOut,
    MessageStatsResponse,
    MessageStatusUpdateIn,
    ScheduleResponse,
)
from rapport.core.errors import ContactNotFoundError, InvalidTransitionError, MessageNotFoundError
from rapport.db.pg.queries import get_message
from rapport.services.replies.lifecycle import send_message, update_message_status
from rapport.services.replies.scheduler import ReplyScheduler
from rapport.services.replies.stats import get_user_message_stats

router = APIRouter(prefix="/messages", tags=["messages"])
logger = logging.getLogger(__name__)


def _ensure_owned_message(db: Session, user_id: str, message_id: str) -> None:
    message = get_message(db, message_id)
    if message is None or message.owner_user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Message {message_id} not found")


@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def create_message(
    payload: MessageIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    scheduler: ReplyScheduler = Depends(get_scheduler),
) -> MessageOut:
    try:
        message = send_message(
            db,
            scheduler,
            user_id=user_id,
            contact_id=payload.contact_id,
            content=payload.content,
            message_type=payload.type,
            subject=payload.subject,
            priority=payload.priority,
        )
    except ContactNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return MessageOut.model_validate(message)


@router.get("/stats", response_model=MessageStatsResponse)
def message_stats(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MessageStatsResponse:
    return MessageStatsResponse(**get_user_message_stats(db, user_id))


@router.post("/{message_id}/schedule", response_model=ScheduleResponse)
def schedule_reply(
    message_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    scheduler: ReplyScheduler = Depends(get_scheduler),
) -> ScheduleResponse:
    _ensure_owned_message(db, user_id, message_id)
    try:
        task = scheduler.schedule(message_id)
    except MessageNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if task is None:
        return ScheduleResponse(message_id=message_id, scheduled=False)
    return ScheduleResponse(message_id=message_id, scheduled=True, fire_at=task.fire_at)


@router.post("/{message_id}/cancel", response_model=CancelResponse)
def cancel_reply(
    message_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    scheduler: ReplyScheduler = Depends(get_scheduler),
) -> CancelResponse:
    _ensure_owned_message(db, user_id, message_id)
    return CancelResponse(message_id=message_id, cancelled=scheduler.cancel(message_id))


@router.patch("/{message_id}/status", response_model=MessageOut)
def patch_message_status(
    message_id: str,
    payload: MessageStatusUpdateIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    scheduler: ReplyScheduler = Depends(get_scheduler),
) -> MessageOut:
    try:
        message = update_message_status(
            db,
            scheduler,
            user_id=user_id,
            message_id=message_id,
            status=payload.status,
            reply_content=payload.reply_content,
        )
    except MessageNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        logger.info(
            "message_status_transition_rejected",
            extra={"message_id": message_id, "current": exc.current, "requested": exc.requested},
        )
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return MessageOut.model_validate(message)
