"""RQ plumbing for background jobs and delayed reply delivery.

Jobs are addressed by name inside ``rapport.workers.jobs``. In ``inline`` mode, and when
Redis cannot be reached for an immediate job, the job runs in the calling process instead.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.job import Job

from rapport.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

JOBS_MODULE = "rapport.workers.jobs"


def job_path(job_name: str) -> str:
    return f"{JOBS_MODULE}.{job_name}"


@lru_cache(maxsize=4)
def _redis(url: str) -> Redis:
    return Redis.from_url(url)


def get_queue(settings: Settings | None = None) -> Queue:
    settings = settings or get_settings()
    return Queue(settings.queue_name, connection=_redis(settings.redis_url))


def _retry_policy(settings: Settings) -> Retry | None:
    if settings.queue_retry_max <= 0:
        return None
    return Retry(max=settings.queue_retry_max, interval=settings.queue_retry_interval_seconds)


def _run_inline(job_name: str, *args, **kwargs):
    from rapport.workers import jobs

    result = getattr(jobs, job_name)(*args, **kwargs)
    logger.info("job_ran_inline", extra={"job_name": job_name})
    return result


def enqueue_job(job_name: str, *args, **kwargs) -> str:
    settings = get_settings()
    if settings.queue_mode == "inline":
        _run_inline(job_name, *args, **kwargs)
        return f"inline-{job_name}"

    try:
        job = get_queue(settings).enqueue(job_path(job_name), *args, retry=_retry_policy(settings), **kwargs)
    except RedisError:
        logger.exception("redis_enqueue_failed_falling_back_inline", extra={"job_name": job_name})
        _run_inline(job_name, *args, **kwargs)
        return f"fallback-inline-{job_name}"

    logger.info("enqueued_job", extra={"job_name": job_name, "job_id": job.id})
    return job.id


def enqueue_job_in(
    delay: timedelta,
    job_name: str,
    *args,
    job_id: str | None = None,
    settings: Settings | None = None,
) -> Job:
    """Schedule ``job_name`` after ``delay``; needs a worker started with ``--with-scheduler``.

    Raises ``RedisError`` when Redis is unreachable; callers decide how to fall back.
    """
    settings = settings or get_settings()
    job = get_queue(settings).enqueue_in(delay, job_path(job_name), *args, job_id=job_id, retry=_retry_policy(settings))
    logger.info(
        "delayed_job_enqueued",
        extra={"job_name": job_name, "job_id": job.id, "delay_seconds": round(delay.total_seconds(), 1)},
    )
    return job
