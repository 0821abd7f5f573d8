from __future__ import annotations


class RapportError(Exception):
    """Base class for domain errors raised by services."""


class MessageNotFoundError(RapportError):
    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id


class ContactNotFoundError(RapportError):
    def __init__(self, contact_id: str) -> None:
        super().__init__(f"Contact {contact_id} not found")
        self.contact_id = contact_id


class InvalidTransitionError(RapportError):
    def __init__(self, message_id: str, current: str, requested: str) -> None:
        super().__init__(f"Message {message_id} cannot move from {current} to {requested}")
        self.message_id = message_id
        self.current = current
        self.requested = requested


class AnalyticsStoreError(RapportError):
    """Transient store failure while building a snapshot; safe to retry."""
