from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from rapport.db.pg.base import Base

MESSAGE_PENDING = "pending"
MESSAGE_RESPONDED = "responded"
MESSAGE_NO_RESPONSE = "no_response"
MESSAGE_STATUSES = (MESSAGE_PENDING, MESSAGE_RESPONDED, MESSAGE_NO_RESPONSE)

STRENGTH_WEAK = "Weak"
STRENGTH_MEDIUM = "Medium"
STRENGTH_STRONG = "Strong"
STRENGTH_AT_RISK = "At-Risk"


def _uuid() -> str:
    return str(uuid.uuid4())


class Contact(Base):
    __tablename__ = "contacts"

    contact_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    relationship_strength: Mapped[str] = mapped_column(String(16), nullable=False, default=STRENGTH_MEDIUM)
    last_contacted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recent_interaction_ids_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Interaction(Base):
    __tablename__ = "interactions"

    interaction_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    owner_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False, default="Neutral")
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    follow_up_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    follow_up_notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class Message(Base):
    __tablename__ = "messages"

    message_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    owner_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="Email")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="Medium")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=MESSAGE_PENDING)
    reply_content: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fire_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class AnalyticsSnapshot(Base):
    __tablename__ = "analytics_snapshots"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    contact_growth_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    interaction_metrics_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    relationship_distribution_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    engagement_metrics_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    growth_trends_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    follow_up_metrics_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    ai_insights_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


Index("ix_contacts_owner", Contact.owner_user_id)
Index("ix_interactions_owner_occurred", Interaction.owner_user_id, Interaction.occurred_at)
Index("ix_interactions_contact", Interaction.contact_id)
Index("ix_messages_owner_status", Message.owner_user_id, Message.status)
Index("ix_messages_status_fire_at", Message.status, Message.fire_at)
