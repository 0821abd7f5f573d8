from __future__ import annotations

from fastapi import APIRouter, Depends

from rapport.api.v1.deps import get_scheduler
from rapport.core.clock import utcnow
from rapport.services.replies.scheduler import ReplyScheduler

router = APIRouter(tags=["health"])


@router.get("/health")
def health(scheduler: ReplyScheduler = Depends(get_scheduler)) -> dict:
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "armed_reply_tasks": scheduler.active_task_count(),
    }
