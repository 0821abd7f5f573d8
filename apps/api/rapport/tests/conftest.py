from __future__ import annotations

import random

import pytest

from rapport.db.pg.session import SessionLocal
from rapport.services.replies.scheduler import ReplyScheduler
from rapport.tests.support import NOW, ManualTimers


@pytest.fixture
def manual_timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def scheduler(manual_timers: ManualTimers) -> ReplyScheduler:
    return ReplyScheduler(
        SessionLocal,
        manual_timers,
        clock=lambda: NOW,
        rng=random.Random(7),
    )
