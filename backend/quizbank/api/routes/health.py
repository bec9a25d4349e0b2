from fastapi import APIRouter

from quizbank.core.config import settings
from quizbank.infra.queue import is_async_enabled, queue_info


router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {
        "status": "ok",
        "async_queue": {"enabled": bool(is_async_enabled())},
        "quiz_jobs_queue": queue_info(settings.QUIZ_JOB_QUEUE),
    }
