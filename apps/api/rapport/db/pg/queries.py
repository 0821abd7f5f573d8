from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from rapport.core.clock import as_utc
from rapport.db.pg.models import MESSAGE_PENDING, AnalyticsSnapshot, Contact, Interaction, Message

# Messages


def get_message(db: Session, message_id: str) -> Message | None:
    return db.get(Message, message_id)


def create_message(
    db: Session,
    *,
    contact_id: str,
    owner_user_id: str,
    content: str,
    message_type: str = "Email",
    subject: str | None = None,
    priority: str = "Medium",
    created_at: datetime | None = None,
) -> Message:
    message = Message(
        contact_id=contact_id,
        owner_user_id=owner_user_id,
        content=content,
        type=message_type,
        subject=subject,
        priority=priority,
        status=MESSAGE_PENDING,
    )
    if created_at is not None:
        message.created_at = as_utc(created_at)
    db.add(message)
    db.flush()
    return message


def compare_and_set_message_status(
    db: Session,
    message_id: str,
    *,
    expected: str,
    next_status: str,
    values: Mapping[str, Any] | None = None,
    require_armed: bool = False,
    armed_at: datetime | None = None,
) -> bool:
    """Atomically move a message from ``expected`` to ``next_status``.

    The check and the write are one conditional UPDATE, so two racing callers cannot both
    succeed. With ``require_armed`` the row must also still carry a ``fire_at``; clearing
    ``fire_at`` is how a cancellation beats a late timer.
    With ``armed_at`` the row must still carry that exact ``fire_at``, so a timer from a
    superseded arming cannot deliver against its replacement.
    Does not commit.
    """
    conditions = [Message.message_id == message_id, Message.status == expected]
    if require_armed:
        conditions.append(Message.fire_at.is_not(None))
    if armed_at is not None:
        conditions.append(Message.fire_at == as_utc(armed_at))
    stmt = (
        update(Message)
        .where(*conditions)
        .values(status=next_status, **dict(values or {}))
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def arm_message(db: Session, message_id: str, fire_at: datetime) -> bool:
    stmt = (
        update(Message)
        .where(Message.message_id == message_id, Message.status == MESSAGE_PENDING)
        .values(fire_at=as_utc(fire_at))
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def disarm_message(db: Session, message_id: str) -> bool:
    stmt = (
        update(Message)
        .where(
            Message.message_id == message_id,
            Message.status == MESSAGE_PENDING,
            Message.fire_at.is_not(None),
        )
        .values(fire_at=None)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def list_armed_messages(db: Session) -> list[Message]:
    return list(
        db.scalars(
            select(Message)
            .where(Message.status == MESSAGE_PENDING, Message.fire_at.is_not(None))
            .order_by(Message.fire_at.asc())
        ).all()
    )


def list_pending_messages_created_before(db: Session, cutoff: datetime, user_id: str | None = None) -> list[Message]:
    stmt = select(Message).where(Message.status == MESSAGE_PENDING, Message.created_at < as_utc(cutoff))
    if user_id is not None:
        stmt = stmt.where(Message.owner_user_id == user_id)
    return list(db.scalars(stmt.order_by(Message.created_at.asc())).all())


def list_user_messages(db: Session, user_id: str) -> list[Message]:
    return list(db.scalars(select(Message).where(Message.owner_user_id == user_id)).all())


# Contacts


def get_user_contact(db: Session, user_id: str, contact_id: str) -> Contact | None:
    contact = db.get(Contact, contact_id)
    if contact is None or contact.owner_user_id != user_id:
        return None
    return contact


def list_user_contacts(db: Session, user_id: str, created_before: datetime | None = None) -> list[Contact]:
    stmt = select(Contact).where(Contact.owner_user_id == user_id)
    if created_before is not None:
        stmt = stmt.where(Contact.created_at < as_utc(created_before))
    return list(db.scalars(stmt.order_by(Contact.created_at.asc(), Contact.contact_id.asc())).all())


def count_contacts(db: Session, user_id: str, *, start: datetime | None = None, end: datetime | None = None) -> int:
    stmt = select(func.count()).select_from(Contact).where(Contact.owner_user_id == user_id)
    if start is not None:
        stmt = stmt.where(Contact.created_at >= as_utc(start))
    if end is not None:
        stmt = stmt.where(Contact.created_at < as_utc(end))
    return int(db.scalar(stmt) or 0)


def count_active_contacts(db: Session, user_id: str, *, since: datetime, end: datetime) -> int:
    stmt = (
        select(func.count())
        .select_from(Contact)
        .where(
            Contact.owner_user_id == user_id,
            Contact.created_at < as_utc(end),
            Contact.last_contacted >= as_utc(since),
            Contact.last_contacted < as_utc(end),
        )
    )
    return int(db.scalar(stmt) or 0)


def relationship_strength_counts(db: Session, user_id: str, *, end: datetime) -> dict[str, int]:
    rows = db.execute(
        select(Contact.relationship_strength, func.count())
        .where(Contact.owner_user_id == user_id, Contact.created_at < as_utc(end))
        .group_by(Contact.relationship_strength)
    ).all()
    return {strength: int(count) for strength, count in rows}


def list_user_ids_with_contacts(db: Session) -> list[str]:
    return list(db.scalars(select(Contact.owner_user_id).distinct().order_by(Contact.owner_user_id)).all())


def touch_contact_last_contacted(db: Session, contact_id: str, when: datetime) -> bool:
    stmt = (
        update(Contact)
        .where(Contact.contact_id == contact_id)
        .values(last_contacted=as_utc(when))
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


# Interactions


def count_interactions(db: Session, user_id: str, *, start: datetime | None = None, end: datetime | None = None) -> int:
    stmt = select(func.count()).select_from(Interaction).where(Interaction.owner_user_id == user_id)
    if start is not None:
        stmt = stmt.where(Interaction.occurred_at >= as_utc(start))
    if end is not None:
        stmt = stmt.where(Interaction.occurred_at < as_utc(end))
    return int(db.scalar(stmt) or 0)


def interaction_counts_by(db: Session, user_id: str, column: str, *, start: datetime, end: datetime) -> dict[str, int]:
    group_column = getattr(Interaction, column)
    rows = db.execute(
        select(group_column, func.count())
        .where(
            Interaction.owner_user_id == user_id,
            Interaction.occurred_at >= as_utc(start),
            Interaction.occurred_at < as_utc(end),
        )
        .group_by(group_column)
    ).all()
    return {str(key): int(count) for key, count in rows if key is not None}


def list_user_interactions(db: Session, user_id: str, *, end: datetime | None = None) -> list[Interaction]:
    stmt = select(Interaction).where(Interaction.owner_user_id == user_id)
    if end is not None:
        stmt = stmt.where(Interaction.occurred_at < as_utc(end))
    return list(db.scalars(stmt.order_by(Interaction.occurred_at.asc())).all())


def list_follow_ups(db: Session, user_id: str, *, start: datetime, end: datetime) -> list[Interaction]:
    return list(
        db.scalars(
            select(Interaction).where(
                Interaction.owner_user_id == user_id,
                Interaction.follow_up_required.is_(True),
                Interaction.occurred_at >= as_utc(start),
                Interaction.occurred_at < as_utc(end),
            )
        ).all()
    )


def interaction_counts_by_contact(db: Session, user_id: str) -> dict[str, int]:
    rows = db.execute(
        select(Interaction.contact_id, func.count())
        .where(Interaction.owner_user_id == user_id)
        .group_by(Interaction.contact_id)
    ).all()
    return {contact_id: int(count) for contact_id, count in rows}


# Analytics snapshots


def get_snapshot(db: Session, user_id: str, day: date) -> AnalyticsSnapshot | None:
    return db.get(AnalyticsSnapshot, (user_id, day))


def get_previous_snapshot(db: Session, user_id: str, day: date) -> AnalyticsSnapshot | None:
    return get_snapshot(db, user_id, day - timedelta(days=1))


def get_latest_snapshot(db: Session, user_id: str) -> AnalyticsSnapshot | None:
    return db.scalar(
        select(AnalyticsSnapshot)
        .where(AnalyticsSnapshot.user_id == user_id)
        .order_by(AnalyticsSnapshot.day.desc())
        .limit(1)
    )


def list_snapshots(db: Session, user_id: str, *, start: date, end: date) -> list[AnalyticsSnapshot]:
    return list(
        db.scalars(
            select(AnalyticsSnapshot)
            .where(
                AnalyticsSnapshot.user_id == user_id,
                AnalyticsSnapshot.day >= start,
                AnalyticsSnapshot.day <= end,
            )
            .order_by(AnalyticsSnapshot.day.asc())
        ).all()
    )


def upsert_snapshot(db: Session, user_id: str, day: date, values: Mapping[str, Any]) -> None:
    """Insert or overwrite the (user, day) snapshot in one statement. Does not commit."""
    row = {"user_id": user_id, "day": day, **values}
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(AnalyticsSnapshot).values(**row)
    elif dialect == "sqlite":
        stmt = sqlite_insert(AnalyticsSnapshot).values(**row)
    else:
        existing = get_snapshot(db, user_id, day)
        if existing is None:
            db.add(AnalyticsSnapshot(**row))
        else:
            for key, value in values.items():
                setattr(existing, key, value)
        db.flush()
        return

    stmt = stmt.on_conflict_do_update(
        index_elements=[AnalyticsSnapshot.user_id, AnalyticsSnapshot.day],
        set_={key: stmt.excluded[key] for key in values},
    )
    db.execute(stmt)


def count_snapshots(db: Session, user_id: str) -> int:
    return int(
        db.scalar(select(func.count()).select_from(AnalyticsSnapshot).where(AnalyticsSnapshot.user_id == user_id)) or 0
    )
