from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from rapport.core.clock import as_utc, utcnow
from rapport.core.errors import ContactNotFoundError, InvalidTransitionError, MessageNotFoundError
from rapport.db.pg.models import MESSAGE_NO_RESPONSE, MESSAGE_PENDING, MESSAGE_RESPONDED, Message
from rapport.db.pg.queries import (
    compare_and_set_message_status,
    create_message,
    get_message,
    get_user_contact,
    list_pending_messages_created_before,
)
from rapport.services.replies.scheduler import ReplyScheduler

logger = logging.getLogger(__name__)


def send_message(
    db: Session,
    scheduler: ReplyScheduler,
    *,
    user_id: str,
    contact_id: str,
    content: str,
    message_type: str = "Email",
    subject: str | None = None,
    priority: str = "Medium",
    now: datetime | None = None,
) -> Message:
    now = as_utc(now or utcnow())
    contact = get_user_contact(db, user_id, contact_id)
    if contact is None:
        raise ContactNotFoundError(contact_id)

    message = create_message(
        db,
        contact_id=contact_id,
        owner_user_id=user_id,
        content=content,
        message_type=message_type,
        subject=subject,
        priority=priority,
        created_at=now,
    )
    contact.last_contacted = now
    db.commit()

    scheduler.schedule(message.message_id)
    db.refresh(message)
    return message


def update_message_status(
    db: Session,
    scheduler: ReplyScheduler,
    *,
    user_id: str,
    message_id: str,
    status: str,
    reply_content: str | None = None,
    now: datetime | None = None,
) -> Message:
    message = get_message(db, message_id)
    if message is None or message.owner_user_id != user_id:
        raise MessageNotFoundError(message_id)
    if status == message.status:
        return message
    if message.status != MESSAGE_PENDING or status == MESSAGE_PENDING:
        raise InvalidTransitionError(message_id, message.status, status)

    scheduler.cancel(message_id)

    values: dict[str, object] = {"fire_at": None}
    if status == MESSAGE_RESPONDED:
        values["reply_content"] = reply_content
        values["replied_at"] = as_utc(now or utcnow())
    applied = compare_and_set_message_status(
        db,
        message_id,
        expected=MESSAGE_PENDING,
        next_status=status,
        values=values,
    )
    if not applied:
        db.rollback()
        current = db.get(Message, message_id, populate_existing=True)
        raise InvalidTransitionError(message_id, current.status if current else "missing", status)
    db.commit()
    return db.get(Message, message_id, populate_existing=True)


def sweep_unanswered(
    db: Session,
    scheduler: ReplyScheduler,
    *,
    older_than_days: int,
    user_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, int]:
    """Mark messages pending for longer than ``older_than_days`` as ``no_response``."""
    cutoff = as_utc(now or utcnow()) - timedelta(days=older_than_days)
    candidates = list_pending_messages_created_before(db, cutoff, user_id=user_id)
    candidate_ids = [message.message_id for message in candidates]

    transitioned = 0
    for message_id in candidate_ids:
        scheduler.cancel(message_id)
        if compare_and_set_message_status(
            db,
            message_id,
            expected=MESSAGE_PENDING,
            next_status=MESSAGE_NO_RESPONSE,
            values={"fire_at": None},
        ):
            transitioned += 1
        db.commit()

    logger.info(
        "unanswered_messages_swept",
        extra={"candidates": len(candidate_ids), "transitioned": transitioned, "user_id": user_id},
    )
    return {"candidates": len(candidate_ids), "transitioned": transitioned}
