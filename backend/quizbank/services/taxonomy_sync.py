from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Set

from sqlalchemy.orm import Session

from quizbank.models.user_bookmark import UserBookmark
from quizbank.models.user_question_stat import UserQuestionStat
from quizbank.services.stats_counts import LEVELS, find_counts, move
from quizbank.services.triggers import DocumentWriter

logger = logging.getLogger(__name__)


def sync_question_taxonomy(
    db: Session,
    writer: DocumentWriter,
    question_id: int,
    old_doc: Dict[str, Any],
    new_doc: Dict[str, Any],
) -> Dict[str, int]:
    """Propagate a question's theme/subtheme/group change to its denormalized copies.

    Stats and bookmarks are patched through `writer` so per-user aggregates
    move with them. Existing UserStatsCounts rows of the affected users move
    one count per changed level; users without a counts row are skipped.
    """
    summary = {"stats_updated": 0, "bookmarks_updated": 0, "users_updated": 0}
    changed = [(level, field) for level, field in LEVELS if old_doc.get(field) != new_doc.get(field)]
    if not changed:
        return summary

    taxonomy = {field: new_doc.get(field) for _, field in LEVELS}

    answered: Set[int] = set()
    incorrect: Set[int] = set()
    bookmarked: Set[int] = set()

    stats = db.query(UserQuestionStat).filter(UserQuestionStat.question_id == int(question_id)).all()
    for stat in stats:
        writer.patch(stat, **taxonomy)
        summary["stats_updated"] += 1
        if stat.has_answered:
            answered.add(int(stat.user_id))
        if stat.is_incorrect:
            incorrect.add(int(stat.user_id))

    bookmarks = db.query(UserBookmark).filter(UserBookmark.question_id == int(question_id)).all()
    for bm in bookmarks:
        writer.patch(bm, **taxonomy)
        summary["bookmarks_updated"] += 1
        bookmarked.add(int(bm.user_id))

    tenant_id = new_doc.get("tenant_id") or old_doc.get("tenant_id")
    for user_id in sorted(answered | incorrect | bookmarked):
        counts = find_counts(db, user_id, tenant_id)
        if counts is None:
            continue
        touched = False
        for level, field in changed:
            old_id, new_id = old_doc.get(field), new_doc.get(field)
            for kind, users in (("answered", answered), ("incorrect", incorrect), ("bookmarked", bookmarked)):
                if user_id in users:
                    touched = move(counts, kind, level, old_id, new_id) or touched
        if touched:
            counts.last_updated = datetime.now(timezone.utc)
            summary["users_updated"] += 1

    db.flush()
    logger.info("taxonomy sync question_id=%s: %s", question_id, summary)
    return summary
