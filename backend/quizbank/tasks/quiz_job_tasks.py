from __future__ import annotations

from typing import Any, Dict

from quizbank.core.config import settings
from quizbank.db.session import SessionLocal
from quizbank.infra.queue import enqueue, is_async_enabled
from quizbank.models.quiz_creation_job import TERMINAL_STATUSES
from quizbank.services.aggregate_store import build_aggregate_store
from quizbank.services.quiz_workflow import QuizCreationWorkflow


def task_advance_quiz_job(job_id: int) -> Dict[str, Any]:
    """Drive one quiz creation job.

    Async: run up to QUIZ_MAX_STEPS_PER_RUN steps, then re-enqueue.
    Sync fallback: loop here until the job is terminal.
    """
    async_mode = is_async_enabled()
    db = SessionLocal()
    try:
        workflow = QuizCreationWorkflow(build_aggregate_store())
        max_steps = int(settings.QUIZ_MAX_STEPS_PER_RUN) if async_mode else None
        job = workflow.run(db, int(job_id), max_steps=max_steps)
        out = {"job_id": int(job.id), "status": job.status, "progress": int(job.progress or 0)}
    finally:
        db.close()

    if async_mode and out["status"] not in TERMINAL_STATUSES:
        enqueue(task_advance_quiz_job, int(job_id), queue_name=settings.QUIZ_JOB_QUEUE)
        out["requeued"] = True
    return out
