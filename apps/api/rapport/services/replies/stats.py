from __future__ import annotations

from statistics import mean

from sqlalchemy.orm import Session

from rapport.core.clock import as_utc
from rapport.db.pg.models import MESSAGE_NO_RESPONSE, MESSAGE_PENDING, MESSAGE_RESPONDED
from rapport.db.pg.queries import list_user_messages


def get_user_message_stats(db: Session, user_id: str) -> dict[str, int]:
    messages = list_user_messages(db, user_id)
    total = len(messages)
    pending = sum(1 for message in messages if message.status == MESSAGE_PENDING)
    responded = [message for message in messages if message.status == MESSAGE_RESPONDED]
    no_response = sum(1 for message in messages if message.status == MESSAGE_NO_RESPONSE)

    latencies = [
        (as_utc(message.replied_at) - as_utc(message.created_at)).total_seconds() / 3600
        for message in responded
        if message.replied_at is not None and message.created_at is not None
    ]

    return {
        "total_messages": total,
        "pending_messages": pending,
        "responded_messages": len(responded),
        "no_response_messages": no_response,
        "response_rate": round(len(responded) / total * 100) if total else 0,
        "pending_follow_ups": pending,
        "average_response_time_hours": round(mean(latencies)) if latencies else 0,
    }
