from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from quizbank.models.user_bookmark import UserBookmark
from quizbank.models.user_question_stat import UserQuestionStat
from quizbank.services import stats_counts
from quizbank.services.questions_service import get_question_or_404
from quizbank.services.triggers import DocumentWriter, snapshot


def record_answer(
    db: Session,
    writer: DocumentWriter,
    *,
    user_id: int,
    question_id: int,
    is_correct: bool,
) -> UserQuestionStat:
    """Upsert the user's stat for a question (last answer wins)."""
    question = get_question_or_404(db, question_id)
    now = datetime.now(timezone.utc)
    counts = stats_counts.get_or_create_counts(db, user_id, question.tenant_id)

    stat = (
        db.query(UserQuestionStat)
        .filter(UserQuestionStat.user_id == int(user_id), UserQuestionStat.question_id == int(question_id))
        .order_by(UserQuestionStat.id.asc())
        .first()
    )
    if stat:
        was_answered = bool(stat.has_answered)
        was_incorrect = bool(stat.is_incorrect)
        writer.patch(stat, has_answered=True, is_incorrect=not is_correct, answered_at=now)
        doc = snapshot(stat)
        if not was_answered:
            stats_counts.bump(counts, "answered", doc, 1)
        if was_incorrect and is_correct:
            stats_counts.bump(counts, "incorrect", doc, -1)
        elif not was_incorrect and not is_correct:
            stats_counts.bump(counts, "incorrect", doc, 1)
    else:
        stat = UserQuestionStat(
            user_id=int(user_id),
            question_id=int(question.id),
            tenant_id=question.tenant_id,
            has_answered=True,
            is_incorrect=not is_correct,
            answered_at=now,
            theme_id=question.theme_id,
            subtheme_id=question.subtheme_id,
            group_id=question.group_id,
        )
        writer.insert(stat)
        doc = snapshot(stat)
        stats_counts.bump(counts, "answered", doc, 1)
        if not is_correct:
            stats_counts.bump(counts, "incorrect", doc, 1)

    db.commit()
    db.refresh(stat)
    return stat


def toggle_bookmark(db: Session, writer: DocumentWriter, *, user_id: int, question_id: int) -> Dict[str, Any]:
    question = get_question_or_404(db, question_id)
    counts = stats_counts.get_or_create_counts(db, user_id, question.tenant_id)

    existing = (
        db.query(UserBookmark)
        .filter(UserBookmark.user_id == int(user_id), UserBookmark.question_id == int(question_id))
        .first()
    )
    if existing:
        stats_counts.bump(counts, "bookmarked", snapshot(existing), -1)
        writer.delete(existing)
        db.commit()
        return {"question_id": int(question_id), "bookmarked": False}

    bm = UserBookmark(
        user_id=int(user_id),
        question_id=int(question.id),
        tenant_id=question.tenant_id,
        theme_id=question.theme_id,
        subtheme_id=question.subtheme_id,
        group_id=question.group_id,
    )
    writer.insert(bm)
    stats_counts.bump(counts, "bookmarked", snapshot(bm), 1)
    db.commit()
    return {"question_id": int(question_id), "bookmarked": True}


def get_user_counts(db: Session, user_id: int, tenant_id: Optional[int] = None) -> Dict[str, Any]:
    return stats_counts.counts_to_dict(stats_counts.find_counts(db, user_id, tenant_id))
