from __future__ import annotations

import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from quizbank.models.custom_quiz import CustomQuiz
from quizbank.models.question import Question
from quizbank.models.taxonomy import Group, Subtheme, Theme
from quizbank.models.user_bookmark import UserBookmark
from quizbank.models.user_question_stat import UserQuestionStat
from quizbank.services import stats_counts
from quizbank.services.taxonomy_sync import sync_question_taxonomy
from quizbank.services.triggers import DocumentWriter, snapshot

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "title",
    "question_text",
    "explanation_text",
    "alternatives",
    "correct_alternative_index",
    "question_code",
    "is_public",
    "theme_id",
    "subtheme_id",
    "group_id",
}
TAXONOMY_FIELDS = ("theme_id", "subtheme_id", "group_id")


def normalize_title(title: str) -> str:
    s = unicodedata.normalize("NFKD", str(title or ""))
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", s).strip().lower()


def validate_taxonomy(
    db: Session,
    tenant_id: int,
    theme_id: int,
    subtheme_id: Optional[int],
    group_id: Optional[int],
) -> None:
    """Group ⊆ Subtheme ⊆ Theme ⊆ Tenant."""
    theme = db.query(Theme).filter(Theme.id == int(theme_id)).first()
    if not theme or int(theme.tenant_id) != int(tenant_id):
        raise HTTPException(status_code=400, detail="Theme not found for tenant")

    if subtheme_id is not None:
        sub = db.query(Subtheme).filter(Subtheme.id == int(subtheme_id)).first()
        if not sub or int(sub.theme_id) != int(theme_id):
            raise HTTPException(status_code=400, detail="Subtheme does not belong to theme")

    if group_id is not None:
        if subtheme_id is None:
            raise HTTPException(status_code=400, detail="Group requires a subtheme")
        grp = db.query(Group).filter(Group.id == int(group_id)).first()
        if not grp or int(grp.subtheme_id) != int(subtheme_id):
            raise HTTPException(status_code=400, detail="Group does not belong to subtheme")


def get_question_or_404(db: Session, question_id: int) -> Question:
    q = db.query(Question).filter(Question.id == int(question_id)).first()
    if not q:
        raise HTTPException(status_code=404, detail="Question not found")
    return q


def create_question(
    db: Session,
    writer: DocumentWriter,
    *,
    tenant_id: int,
    theme_id: int,
    title: str,
    subtheme_id: Optional[int] = None,
    group_id: Optional[int] = None,
    question_text: str = "",
    explanation_text: Optional[str] = None,
    alternatives: Optional[List[str]] = None,
    correct_alternative_index: int = 0,
    question_code: Optional[str] = None,
    author_id: Optional[int] = None,
    is_public: bool = False,
) -> Question:
    validate_taxonomy(db, tenant_id, theme_id, subtheme_id, group_id)
    row = Question(
        tenant_id=int(tenant_id),
        theme_id=int(theme_id),
        subtheme_id=subtheme_id,
        group_id=group_id,
        title=str(title),
        normalized_title=normalize_title(title),
        question_text=str(question_text or ""),
        explanation_text=explanation_text,
        alternatives=list(alternatives or []),
        correct_alternative_index=int(correct_alternative_index),
        question_code=question_code,
        author_id=author_id,
        is_public=bool(is_public),
    )
    writer.insert(row)
    db.commit()
    db.refresh(row)
    return row


def update_question(
    db: Session,
    writer: DocumentWriter,
    question_id: int,
    **changes: Any,
) -> Tuple[Question, Dict[str, int]]:
    """Patch a question. Taxonomy changes move aggregates and denormalized copies."""
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise HTTPException(status_code=400, detail=f"Fields not editable: {sorted(unknown)}")

    row = get_question_or_404(db, question_id)
    old = snapshot(row)

    if any(f in changes for f in TAXONOMY_FIELDS):
        validate_taxonomy(
            db,
            int(row.tenant_id),
            changes.get("theme_id", row.theme_id),
            changes.get("subtheme_id", row.subtheme_id),
            changes.get("group_id", row.group_id),
        )
    if "title" in changes:
        changes["normalized_title"] = normalize_title(changes["title"])

    writer.patch(row, **changes)
    summary = sync_question_taxonomy(db, writer, int(row.id), old, snapshot(row))
    db.commit()
    db.refresh(row)
    return row, summary


def delete_question(db: Session, writer: DocumentWriter, question_id: int) -> Dict[str, int]:
    """Delete a question and every reference to it.

    The id is removed from custom quiz lists; stats and bookmarks are deleted
    (and counted out of UserStatsCounts) before the question itself.
    """
    row = get_question_or_404(db, question_id)
    qid = int(row.id)
    out = {"quizzes_updated": 0, "stats_deleted": 0, "bookmarks_deleted": 0}

    for quiz in db.query(CustomQuiz).filter(CustomQuiz.tenant_id == row.tenant_id).all():
        ids = [int(x) for x in quiz.question_ids or []]
        if qid in ids:
            quiz.question_ids = [x for x in ids if x != qid]
            out["quizzes_updated"] += 1

    for stat in db.query(UserQuestionStat).filter(UserQuestionStat.question_id == qid).all():
        counts = stats_counts.find_counts(db, int(stat.user_id), stat.tenant_id)
        if counts is not None:
            doc = snapshot(stat)
            if stat.has_answered:
                stats_counts.bump(counts, "answered", doc, -1)
            if stat.is_incorrect:
                stats_counts.bump(counts, "incorrect", doc, -1)
        writer.delete(stat)
        out["stats_deleted"] += 1

    for bm in db.query(UserBookmark).filter(UserBookmark.question_id == qid).all():
        counts = stats_counts.find_counts(db, int(bm.user_id), bm.tenant_id)
        if counts is not None:
            stats_counts.bump(counts, "bookmarked", snapshot(bm), -1)
        writer.delete(bm)
        out["bookmarks_deleted"] += 1

    writer.delete(row)
    db.commit()
    logger.info("deleted question_id=%s: %s", qid, out)
    return out
