"""RQ helpers. With ASYNC_QUEUE_ENABLED=false everything runs inline."""

from __future__ import annotations

from typing import Any, Callable, Dict

import redis
from rq import Queue

from quizbank.core.config import settings


def is_async_enabled() -> bool:
    return bool(settings.ASYNC_QUEUE_ENABLED)


def get_redis_conn():
    return redis.Redis.from_url(str(settings.REDIS_URL))


def get_queue(name: str = "default"):
    return Queue(name, connection=get_redis_conn(), default_timeout=int(settings.RQ_DEFAULT_TIMEOUT_SEC))


def enqueue(fn: Callable[..., Any], *args: Any, queue_name: str = "default", **kwargs: Any) -> Dict[str, Any]:
    """Enqueue a background job.

    If async is disabled, runs `fn` synchronously and returns a pseudo-job result.
    """
    if not is_async_enabled():
        out = fn(*args, **kwargs)
        return {"job_id": None, "queued": False, "sync_executed": True, "result": out}

    job = get_queue(queue_name).enqueue(fn, *args, **kwargs)
    return {"job_id": str(job.id), "queued": True, "sync_executed": False}


def queue_info(name: str) -> Dict[str, Any]:
    if not is_async_enabled():
        return {"name": name, "enabled": False}
    q = get_queue(name)
    return {"name": name, "enabled": True, "pending": int(q.count)}
