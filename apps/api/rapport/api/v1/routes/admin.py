from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends

from rapport.api.v1.deps import get_settings_dep
from rapport.api.v1.schemas import (
    BackfillAnalyticsIn,
    JobEnqueuedResponse,
    RefreshStrengthsIn,
    SweepUnansweredIn,
)
from rapport.core.security import require_admin
from rapport.workers.queue import enqueue_job

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/backfill_analytics", response_model=JobEnqueuedResponse)
def backfill_analytics(payload: BackfillAnalyticsIn, settings=Depends(get_settings_dep)) -> JobEnqueuedResponse:
    days = payload.days or settings.analytics_backfill_days
    end_day = payload.end_day.isoformat() if payload.end_day else None
    if payload.user_id:
        job_id = enqueue_job("backfill_user_analytics_job", payload.user_id, days, end_day)
    else:
        job_id = enqueue_job("backfill_all_users_analytics_job", days, end_day)
    return JobEnqueuedResponse(job_id=job_id, status="enqueued")


@router.post("/sweep_unanswered", response_model=JobEnqueuedResponse)
def sweep_unanswered(payload: SweepUnansweredIn, settings=Depends(get_settings_dep)) -> JobEnqueuedResponse:
    older_than_days = payload.older_than_days or settings.no_response_after_days
    job_id = enqueue_job("sweep_unanswered_messages", older_than_days, payload.user_id)
    return JobEnqueuedResponse(job_id=job_id, status="enqueued")


@router.post("/refresh_strengths", response_model=JobEnqueuedResponse)
def refresh_strengths(payload: RefreshStrengthsIn) -> JobEnqueuedResponse:
    job_id = enqueue_job("refresh_relationship_strengths_job", payload.user_id)
    return JobEnqueuedResponse(job_id=job_id, status="enqueued")
