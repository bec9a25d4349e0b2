from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from quizbank.api.deps import get_tenant_id, require_user
from quizbank.core.config import settings
from quizbank.db.session import get_db
from quizbank.infra.queue import enqueue
from quizbank.models.user import User
from quizbank.schemas.quiz_jobs import CreateQuizJobRequest
from quizbank.services import quiz_job_service
from quizbank.tasks.quiz_job_tasks import task_advance_quiz_job

router = APIRouter(tags=["custom-quizzes"])


@router.post("/custom-quizzes/jobs")
def create_quiz_job(
    request: Request,
    payload: CreateQuizJobRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    tenant_id: Optional[int] = Depends(get_tenant_id),
) -> Dict[str, Any]:
    job = quiz_job_service.create_job(
        db,
        user_id=int(user.id),
        payload=payload.model_dump(mode="json"),
        tenant_id=tenant_id,
    )
    data = {"job_id": int(job.id), "workflow_id": job.workflow_id}
    res = enqueue(task_advance_quiz_job, data["job_id"], queue_name=settings.QUIZ_JOB_QUEUE)
    data["queued"] = bool(res.get("queued"))
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/custom-quizzes/jobs/latest")
def latest_quiz_job(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
) -> Dict[str, Any]:
    data = quiz_job_service.get_latest_job(db, int(user.id))
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/custom-quizzes/jobs/{job_id}")
def quiz_job_status(
    request: Request,
    job_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
) -> Dict[str, Any]:
    # null when missing or owned by someone else
    data = quiz_job_service.get_job_status(db, int(job_id), user_id=int(user.id))
    return {"request_id": request.state.request_id, "data": data, "error": None}
