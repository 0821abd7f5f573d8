from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from redis.exceptions import ConnectionError as RedisConnectionError

from rapport.core.config import Settings
from rapport.services.replies.timers import FIRE_JOB_NAME, RQTimerBackend, ThreadTimerBackend, build_timer_backend
from rapport.tests.support import ManualTimers


def test_thread_timer_invokes_callback_with_message_id() -> None:
    fired = threading.Event()
    seen: list[str] = []

    def callback(message_id: str) -> None:
        seen.append(message_id)
        fired.set()

    ThreadTimerBackend().arm(0.01, "msg-1", callback)

    assert fired.wait(timeout=2)
    assert seen == ["msg-1"]


def test_cancelled_thread_timer_never_fires() -> None:
    fired = threading.Event()

    handle = ThreadTimerBackend().arm(0.5, "msg-1", lambda _message_id: fired.set())
    handle.cancel()

    assert not fired.wait(timeout=0.8)


def test_backend_selection_follows_settings() -> None:
    assert isinstance(build_timer_backend(Settings(reply_timer_backend="rq", queue_mode="redis")), RQTimerBackend)
    assert isinstance(build_timer_backend(Settings(reply_timer_backend="rq", queue_mode="inline")), ThreadTimerBackend)
    assert isinstance(build_timer_backend(Settings(reply_timer_backend="thread")), ThreadTimerBackend)


def test_rq_backend_enqueues_fire_job_with_armed_instant(monkeypatch) -> None:
    captured: dict = {}

    class FakeJob:
        id = "reply-msg-1"

    def fake_enqueue_in(delay, job_name, *args, **kwargs):
        captured.update(delay=delay, job_name=job_name, args=args)
        return FakeJob()

    monkeypatch.setattr("rapport.services.replies.timers.enqueue_job_in", fake_enqueue_in)
    armed_at = datetime(2026, 3, 2, 12, 1, 30, 250000, tzinfo=timezone.utc)

    backend = RQTimerBackend(Settings(reply_timer_backend="rq", queue_mode="redis"))
    handle = backend.arm(90, "msg-1", lambda _message_id: None, armed_at=armed_at)

    assert backend.delivers_in_process is False
    assert handle.job.id == "reply-msg-1"
    assert captured["delay"] == timedelta(seconds=90)
    assert captured["job_name"] == FIRE_JOB_NAME
    assert captured["args"] == ("msg-1", armed_at.isoformat())


def test_rq_backend_falls_back_to_local_timer_when_redis_is_down(monkeypatch) -> None:
    def unreachable(*args, **kwargs):
        raise RedisConnectionError("connection refused")

    monkeypatch.setattr("rapport.services.replies.timers.enqueue_job_in", unreachable)
    fallback = ManualTimers()
    armed_at = datetime(2026, 3, 2, 12, 5, tzinfo=timezone.utc)

    backend = RQTimerBackend(Settings(reply_timer_backend="rq", queue_mode="redis"), fallback=fallback)
    backend.arm(30, "msg-1", lambda _message_id: "fired", armed_at=armed_at)

    timer = fallback.latest("msg-1")
    assert timer.armed_at == armed_at
    assert timer.run() == "fired"
