from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from quizbank.models.quiz_creation_job import JobStatus, QuizCreationJob
from quizbank.services.quiz_workflow import MSG_STARTING
from quizbank.services.tenant_service import resolve_tenant_id


def create_job(db: Session, *, user_id: int, payload: Dict[str, Any], tenant_id: Optional[int] = None) -> QuizCreationJob:
    """Store a pending job. Business validation happens inside the workflow."""
    job = QuizCreationJob(
        user_id=int(user_id),
        tenant_id=resolve_tenant_id(db, tenant_id),
        status=JobStatus.pending.value,
        progress=0,
        progress_message=MSG_STARTING,
        input_json=dict(payload),
        step_state_json={"phase": "start"},
        step_count=0,
        workflow_id=uuid.uuid4().hex,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def job_status(job: Optional[QuizCreationJob]) -> Optional[Dict[str, Any]]:
    if job is None:
        return None
    return {
        "job_id": int(job.id),
        "status": job.status,
        "progress": int(job.progress or 0),
        "progress_message": job.progress_message,
        "quiz_id": job.quiz_id,
        "question_count": job.question_count,
        "error": job.error,
        "error_message": job.error_message,
        "created_at": job.created_at.isoformat() if getattr(job, "created_at", None) else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
    }


def get_job_status(db: Session, job_id: int, *, user_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
    q = db.query(QuizCreationJob).filter(QuizCreationJob.id == int(job_id))
    if user_id is not None:
        q = q.filter(QuizCreationJob.user_id == int(user_id))
    return job_status(q.first())


def get_latest_job(db: Session, user_id: int) -> Optional[Dict[str, Any]]:
    job = (
        db.query(QuizCreationJob)
        .filter(QuizCreationJob.user_id == int(user_id))
        .order_by(QuizCreationJob.id.desc())
        .first()
    )
    return job_status(job)
