from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from redis.exceptions import RedisError

from rapport.core.config import Settings
from rapport.workers.queue import enqueue_job_in

logger = logging.getLogger(__name__)

FireCallback = Callable[[str], object]

FIRE_JOB_NAME = "fire_scheduled_reply"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerBackend(Protocol):
    # False when the callback is never invoked here and delivery happens in another process.
    delivers_in_process: bool

    def arm(
        self, delay_seconds: float, message_id: str, callback: FireCallback, *, armed_at: datetime | None = None
    ) -> TimerHandle: ...


class ThreadTimerBackend:
    """In-process timers. Pending fires are lost if the process exits before they run."""

    delivers_in_process = True

    def arm(
        self, delay_seconds: float, message_id: str, callback: FireCallback, *, armed_at: datetime | None = None
    ) -> TimerHandle:
        timer = threading.Timer(max(delay_seconds, 0.0), callback, args=(message_id,))
        timer.daemon = True
        timer.name = f"reply-timer-{message_id}"
        timer.start()
        return timer


class RQJobHandle:
    def __init__(self, job) -> None:
        self.job = job

    def cancel(self) -> None:
        try:
            self.job.cancel()
        except RedisError:
            logger.exception("reply_job_cancel_failed", extra={"job_id": self.job.id})


class RQTimerBackend:
    """Delayed delivery through RQ's scheduler; needs a worker started with ``--with-scheduler``.

    The callback is not used: the worker runs ``fire_scheduled_reply`` with the message id and
    the ``fire_at`` it was armed with, and resolves the scheduler itself. On enqueue failure
    the backend falls back to an in-process timer.
    """

    delivers_in_process = False

    def __init__(self, settings: Settings, fallback: TimerBackend | None = None) -> None:
        self._settings = settings
        self._fallback = fallback or ThreadTimerBackend()

    def arm(
        self, delay_seconds: float, message_id: str, callback: FireCallback, *, armed_at: datetime | None = None
    ) -> TimerHandle:
        try:
            job = enqueue_job_in(
                timedelta(seconds=max(delay_seconds, 0.0)),
                FIRE_JOB_NAME,
                message_id,
                armed_at.isoformat() if armed_at is not None else None,
                job_id=f"reply-{message_id}-{uuid.uuid4().hex[:8]}",
                settings=self._settings,
            )
        except RedisError:
            logger.exception("reply_job_schedule_failed_falling_back_thread", extra={"message_id": message_id})
            return self._fallback.arm(delay_seconds, message_id, callback, armed_at=armed_at)
        return RQJobHandle(job)


def build_timer_backend(settings: Settings) -> TimerBackend:
    if settings.reply_timer_backend == "rq" and settings.queue_mode != "inline":
        return RQTimerBackend(settings)
    return ThreadTimerBackend()
