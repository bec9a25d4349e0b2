from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from quizbank.api.deps import get_aggregate_store, get_document_writer, get_tenant_id, require_admin, require_user
from quizbank.db.session import get_db
from quizbank.models.question import Question
from quizbank.models.user import User
from quizbank.schemas.questions import AnswerRequest, QuestionCreateRequest, QuestionUpdateRequest
from quizbank.services import aggregate_queries, questions_service, user_stats_service
from quizbank.services.aggregate_store import AggregateStore
from quizbank.services.triggers import DocumentWriter

router = APIRouter(tags=["questions"])


def _require_tenant(tenant_id: Optional[int]) -> int:
    if tenant_id is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return int(tenant_id)


def _question_out(q: Question) -> Dict[str, Any]:
    return {
        "id": int(q.id),
        "tenant_id": int(q.tenant_id),
        "theme_id": int(q.theme_id),
        "subtheme_id": q.subtheme_id,
        "group_id": q.group_id,
        "title": q.title,
        "question_code": q.question_code,
        "is_public": bool(q.is_public),
    }


@router.get("/questions/counts")
def question_counts(
    request: Request,
    theme_id: Optional[int] = None,
    subtheme_id: Optional[int] = None,
    group_id: Optional[int] = None,
    tenant_id: Optional[int] = Depends(get_tenant_id),
    store: AggregateStore = Depends(get_aggregate_store),
) -> Dict[str, Any]:
    data = aggregate_queries.get_question_counts(
        store,
        _require_tenant(tenant_id),
        theme_id=theme_id,
        subtheme_id=subtheme_id,
        group_id=group_id,
    )
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.post("/questions")
def create_question(
    request: Request,
    payload: QuestionCreateRequest,
    db: Session = Depends(get_db),
    writer: DocumentWriter = Depends(get_document_writer),
    user: User = Depends(require_admin),
    tenant_id: Optional[int] = Depends(get_tenant_id),
) -> Dict[str, Any]:
    q = questions_service.create_question(
        db,
        writer,
        tenant_id=_require_tenant(tenant_id),
        author_id=int(user.id),
        **payload.model_dump(),
    )
    return {"request_id": request.state.request_id, "data": _question_out(q), "error": None}


@router.patch("/questions/{question_id}")
def update_question(
    request: Request,
    question_id: int,
    payload: QuestionUpdateRequest,
    db: Session = Depends(get_db),
    writer: DocumentWriter = Depends(get_document_writer),
    user: User = Depends(require_admin),
) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    q, summary = questions_service.update_question(db, writer, int(question_id), **changes)
    data = {"question": _question_out(q), "taxonomy_sync": summary}
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.delete("/questions/{question_id}")
def delete_question(
    request: Request,
    question_id: int,
    db: Session = Depends(get_db),
    writer: DocumentWriter = Depends(get_document_writer),
    user: User = Depends(require_admin),
) -> Dict[str, Any]:
    data = questions_service.delete_question(db, writer, int(question_id))
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.post("/questions/{question_id}/answer")
def answer_question(
    request: Request,
    question_id: int,
    payload: AnswerRequest,
    db: Session = Depends(get_db),
    writer: DocumentWriter = Depends(get_document_writer),
    user: User = Depends(require_user),
) -> Dict[str, Any]:
    stat = user_stats_service.record_answer(
        db, writer, user_id=int(user.id), question_id=int(question_id), is_correct=bool(payload.is_correct)
    )
    data = {"question_id": int(stat.question_id), "is_incorrect": bool(stat.is_incorrect)}
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.post("/questions/{question_id}/bookmark")
def toggle_bookmark(
    request: Request,
    question_id: int,
    db: Session = Depends(get_db),
    writer: DocumentWriter = Depends(get_document_writer),
    user: User = Depends(require_user),
) -> Dict[str, Any]:
    data = user_stats_service.toggle_bookmark(db, writer, user_id=int(user.id), question_id=int(question_id))
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/users/me/counts")
def my_counts(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    store: AggregateStore = Depends(get_aggregate_store),
) -> Dict[str, Any]:
    data = user_stats_service.get_user_counts(db, int(user.id), tenant_id)
    data["modes"] = aggregate_queries.get_user_mode_counts(store, int(user.id))
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.post("/aggregates/questions/repair")
def repair_question_aggregates(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    store: AggregateStore = Depends(get_aggregate_store),
) -> Dict[str, Any]:
    data = aggregate_queries.repair_question_aggregates(db, store, _require_tenant(tenant_id))
    return {"request_id": request.state.request_id, "data": data, "error": None}
