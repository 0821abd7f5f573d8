"""Simulated reply delivery for outbound messages.

Every pending message owns at most one armed task. The task's fire instant is persisted on
the message (``fire_at``) so armed replies can be recovered after a restart, and that same
column is the durable cancellation flag: ``cancel`` clears it and ``fire`` only transitions
a message that is still pending and armed. Both are single conditional UPDATEs against the
same row, so whichever reaches the store first wins and the other becomes a no-op.

Every delivery also carries the ``fire_at`` it was armed with and only applies while the
row still holds that value, so a superseded timer never fires against a newer arming. Timers
that deliver in another process (RQ) are therefore not tracked in the in-memory registry:
the worker's fire cannot consume an entry here, and the store already guards them.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache

from sqlalchemy.orm import Session

from rapport.core.clock import as_utc, utcnow
from rapport.core.config import get_settings
from rapport.core.errors import MessageNotFoundError
from rapport.db.pg.models import MESSAGE_PENDING, MESSAGE_RESPONDED, Message
from rapport.db.pg.queries import (
    arm_message,
    compare_and_set_message_status,
    disarm_message,
    get_message,
    list_armed_messages,
    touch_contact_last_contacted,
)
from rapport.db.pg.session import SessionLocal
from rapport.services.replies.timers import TimerBackend, TimerHandle, build_timer_backend

logger = logging.getLogger(__name__)

REPLY_TEMPLATES: tuple[str, ...] = (
    "Thanks for reaching out!",
    "I appreciate your message. Let me get back to you soon.",
    "Got your message, thanks!",
    "Thanks for the update. I'll review this and respond accordingly.",
    "Appreciate you thinking of me. Let's connect soon!",
    "Thanks for sharing this with me.",
    "I'll take a look at this and get back to you.",
    "Thanks for keeping me in the loop!",
    "Great to hear from you! Let me review and respond.",
    "Thanks for the heads up!",
)


@dataclass
class ScheduledTask:
    message_id: str
    fire_at: datetime
    armed_at: datetime
    handle: TimerHandle | None = None
    cancelled: bool = False


class ReplyScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        timers: TimerBackend,
        *,
        min_delay_seconds: float = 30,
        max_delay_seconds: float = 300,
        recovery_min_delay_seconds: float = 10,
        recovery_max_delay_seconds: float = 70,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
        reply_templates: tuple[str, ...] = REPLY_TEMPLATES,
    ) -> None:
        if min_delay_seconds > max_delay_seconds:
            raise ValueError("min_delay_seconds must not exceed max_delay_seconds")
        self._session_factory = session_factory
        self._timers = timers
        self._min_delay = min_delay_seconds
        self._max_delay = max_delay_seconds
        self._recovery_min_delay = recovery_min_delay_seconds
        self._recovery_max_delay = max(recovery_min_delay_seconds, recovery_max_delay_seconds)
        self._clock = clock
        self._rng = rng or random.Random()
        self._reply_templates = reply_templates
        self._lock = threading.Lock()
        self._tasks: dict[str, ScheduledTask] = {}

    def pending_task(self, message_id: str) -> ScheduledTask | None:
        with self._lock:
            return self._tasks.get(message_id)

    def active_task_count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def schedule(self, message_id: str) -> ScheduledTask | None:
        """Arm a simulated reply for a pending message.

        Raises ``MessageNotFoundError`` for unknown messages. Returns ``None`` without
        scheduling when the message already left the pending state.
        """
        delay = self._rng.uniform(self._min_delay, self._max_delay)
        fire_at = as_utc(self._clock()) + timedelta(seconds=delay)

        with self._session_factory() as db:
            message = get_message(db, message_id)
            if message is None:
                raise MessageNotFoundError(message_id)
            if message.status != MESSAGE_PENDING:
                logger.info("reply_schedule_skipped_not_pending", extra={"message_id": message_id, "status": message.status})
                return None
            if not arm_message(db, message_id, fire_at):
                db.rollback()
                logger.info("reply_schedule_lost_race", extra={"message_id": message_id})
                return None
            db.commit()

        logger.info("reply_scheduled", extra={"message_id": message_id, "delay_seconds": round(delay, 1)})
        return self._register(message_id, fire_at, fire_at, delay)

    def cancel(self, message_id: str) -> bool:
        """Disarm the message's task. Unknown, fired or already-cancelled tasks are a no-op."""
        with self._session_factory() as db:
            disarmed = disarm_message(db, message_id)
            db.commit()

        with self._lock:
            task = self._tasks.pop(message_id, None)
            if task is not None:
                task.cancelled = True
        if task is not None and task.handle is not None:
            task.handle.cancel()

        if disarmed:
            logger.info("reply_cancelled", extra={"message_id": message_id})
        return disarmed

    def fire(self, message_id: str, armed_at: datetime | None = None) -> bool:
        """Deliver the simulated reply if the message is still pending and armed.

        ``armed_at`` is the ``fire_at`` the timer was armed with; when given, a message that
        has since been re-armed or disarmed is left alone.
        """
        with self._lock:
            task = self._tasks.get(message_id)
            if task is not None and (armed_at is None or task.armed_at == as_utc(armed_at)):
                del self._tasks[message_id]
            else:
                task = None
        if task is not None and task.cancelled:
            return False
        return self._deliver(message_id, armed_at)

    def _fire_task(self, task: ScheduledTask) -> bool:
        # Bound to one task so a superseded timer cannot consume its replacement.
        with self._lock:
            if self._tasks.get(task.message_id) is task:
                del self._tasks[task.message_id]
        if task.cancelled:
            return False
        return self._deliver(task.message_id, task.armed_at)

    def _deliver(self, message_id: str, armed_at: datetime | None) -> bool:
        reply = self._rng.choice(self._reply_templates)
        now = as_utc(self._clock())
        with self._session_factory() as db:
            applied = compare_and_set_message_status(
                db,
                message_id,
                expected=MESSAGE_PENDING,
                next_status=MESSAGE_RESPONDED,
                values={"reply_content": reply, "replied_at": now, "fire_at": None},
                require_armed=True,
                armed_at=armed_at,
            )
            if not applied:
                db.rollback()
                logger.info("reply_fire_skipped", extra={"message_id": message_id})
                return False

            message = db.get(Message, message_id, populate_existing=True)
            if message is not None:
                touch_contact_last_contacted(db, message.contact_id, now)
            db.commit()

        logger.info("reply_simulated", extra={"message_id": message_id})
        return True

    def recover(self) -> int:
        """Re-arm every pending message that still carries a ``fire_at`` (startup path)."""
        now = as_utc(self._clock())
        with self._session_factory() as db:
            armed = [(message.message_id, as_utc(message.fire_at)) for message in list_armed_messages(db)]

        for message_id, armed_at in armed:
            remaining = (armed_at - now).total_seconds()
            fire_at = armed_at
            if remaining <= 0:
                remaining = self._rng.uniform(self._recovery_min_delay, self._recovery_max_delay)
                fire_at = now + timedelta(seconds=remaining)
            self._register(message_id, fire_at, armed_at, remaining)

        if armed:
            logger.info("reply_tasks_recovered", extra={"count": len(armed)})
        return len(armed)

    def _register(self, message_id: str, fire_at: datetime, armed_at: datetime, delay: float) -> ScheduledTask:
        task = ScheduledTask(message_id=message_id, fire_at=fire_at, armed_at=armed_at)
        with self._lock:
            previous = self._tasks.pop(message_id, None)
            if previous is not None:
                previous.cancelled = True
            if self._timers.delivers_in_process:
                self._tasks[message_id] = task
        if previous is not None and previous.handle is not None:
            previous.handle.cancel()
        task.handle = self._timers.arm(delay, message_id, lambda _message_id: self._fire_task(task), armed_at=armed_at)
        return task


@lru_cache(maxsize=1)
def get_reply_scheduler() -> ReplyScheduler:
    settings = get_settings()
    return ReplyScheduler(
        SessionLocal,
        build_timer_backend(settings),
        min_delay_seconds=settings.reply_delay_min_seconds,
        max_delay_seconds=settings.reply_delay_max_seconds,
        recovery_min_delay_seconds=settings.reply_recovery_delay_min_seconds,
        recovery_max_delay_seconds=settings.reply_recovery_delay_max_seconds,
    )
