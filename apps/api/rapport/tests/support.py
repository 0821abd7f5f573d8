from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from rapport.db.pg.base import Base
from rapport.db.pg.session import engine

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@dataclass
class ManualHandle:
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ArmedTimer:
    delay_seconds: float
    message_id: str
    callback: object
    armed_at: datetime | None = None
    handle: ManualHandle = field(default_factory=ManualHandle)

    def run(self):
        return self.callback(self.message_id)


class ManualTimers:
    """Timer backend that only fires when a test tells it to."""

    delivers_in_process = True

    def __init__(self) -> None:
        self.armed: list[ArmedTimer] = []

    def arm(self, delay_seconds: float, message_id: str, callback, *, armed_at: datetime | None = None) -> ManualHandle:
        timer = ArmedTimer(delay_seconds=delay_seconds, message_id=message_id, callback=callback, armed_at=armed_at)
        self.armed.append(timer)
        return timer.handle

    def latest(self, message_id: str) -> ArmedTimer:
        return [timer for timer in self.armed if timer.message_id == message_id][-1]


class WorkerTimers(ManualTimers):
    """Like the RQ backend: armed jobs are delivered by a worker process, never by callback."""

    delivers_in_process = False
