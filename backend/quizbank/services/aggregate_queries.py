"""Read side of the aggregates, plus a rebuild for drifted question aggregates."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from quizbank.models.question import Question
from quizbank.services import aggregates as agg
from quizbank.services.aggregate_store import AggregateKeyExistsError, AggregateStore
from quizbank.services.triggers import snapshot

logger = logging.getLogger(__name__)


def _ns(tenant_id: int, node_id: Optional[int] = None) -> str:
    return str(int(tenant_id)) if node_id is None else f"{int(tenant_id)}:{int(node_id)}"


def get_total_question_count(store: AggregateStore, tenant_id: int) -> int:
    return store.count(agg.TOTAL_QUESTION_COUNT.name, _ns(tenant_id))


def get_question_count_by_theme(store: AggregateStore, tenant_id: int, theme_id: int) -> int:
    return store.count(agg.QUESTION_COUNT_BY_THEME.name, _ns(tenant_id, theme_id))


def get_question_count_by_subtheme(store: AggregateStore, tenant_id: int, subtheme_id: int) -> int:
    return store.count(agg.QUESTION_COUNT_BY_SUBTHEME.name, _ns(tenant_id, subtheme_id))


def get_question_count_by_group(store: AggregateStore, tenant_id: int, group_id: int) -> int:
    return store.count(agg.QUESTION_COUNT_BY_GROUP.name, _ns(tenant_id, group_id))


def get_random_questions(store: AggregateStore, tenant_id: int, count: int) -> List[int]:
    return store.random_draw(agg.RANDOM_QUESTIONS.name, _ns(tenant_id), count)


def get_random_questions_by_theme(store: AggregateStore, tenant_id: int, theme_id: int, count: int) -> List[int]:
    return store.random_draw(agg.RANDOM_QUESTIONS_BY_THEME.name, _ns(tenant_id, theme_id), count)


def get_random_questions_by_subtheme(store: AggregateStore, tenant_id: int, subtheme_id: int, count: int) -> List[int]:
    return store.random_draw(agg.RANDOM_QUESTIONS_BY_SUBTHEME.name, _ns(tenant_id, subtheme_id), count)


def get_random_questions_by_group(store: AggregateStore, tenant_id: int, group_id: int, count: int) -> List[int]:
    return store.random_draw(agg.RANDOM_QUESTIONS_BY_GROUP.name, _ns(tenant_id, group_id), count)


def get_user_mode_counts(store: AggregateStore, user_id: int) -> Dict[str, int]:
    ns = str(int(user_id))
    return {
        "answered": store.count(agg.ANSWERED_BY_USER.name, ns),
        "incorrect": store.count(agg.INCORRECT_BY_USER.name, ns),
        "bookmarked": store.count(agg.BOOKMARKED_BY_USER.name, ns),
    }


def get_question_counts(
    store: AggregateStore,
    tenant_id: int,
    *,
    theme_id: Optional[int] = None,
    subtheme_id: Optional[int] = None,
    group_id: Optional[int] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {"tenant_id": int(tenant_id), "total": get_total_question_count(store, tenant_id)}
    if theme_id is not None:
        out["theme"] = {"id": int(theme_id), "count": get_question_count_by_theme(store, tenant_id, theme_id)}
    if subtheme_id is not None:
        out["subtheme"] = {
            "id": int(subtheme_id),
            "count": get_question_count_by_subtheme(store, tenant_id, subtheme_id),
        }
    if group_id is not None:
        out["group"] = {"id": int(group_id), "count": get_question_count_by_group(store, tenant_id, group_id)}
    return out


def repair_question_aggregates(
    db: Session,
    store: AggregateStore,
    tenant_id: int,
    *,
    page_size: int = 500,
) -> Dict[str, int]:
    """Rebuild every question aggregate of a tenant from the `questions` table.

    Namespaces are cleared the first time they are seen, then refilled page
    by page (keyset on id).
    """
    cleared = set()
    inserted = 0
    scanned = 0
    cursor = 0
    while True:
        rows = (
            db.query(Question)
            .filter(Question.tenant_id == int(tenant_id), Question.id > cursor)
            .order_by(Question.id.asc())
            .limit(int(page_size))
            .all()
        )
        if not rows:
            break
        for row in rows:
            doc = snapshot(row)
            for definition in agg.QUESTION_AGGREGATES:
                namespace = definition.namespace_for(doc)
                if namespace is None:
                    continue
                if (definition.name, namespace) not in cleared:
                    store.clear(definition.name, namespace)
                    cleared.add((definition.name, namespace))
                try:
                    store.insert(definition.name, namespace, definition.doc_id(doc))
                    inserted += 1
                except AggregateKeyExistsError:
                    pass
        scanned += len(rows)
        cursor = int(rows[-1].id)
        if len(rows) < int(page_size):
            break

    logger.info("repaired question aggregates tenant_id=%s scanned=%s inserted=%s", tenant_id, scanned, inserted)
    return {"questions": scanned, "entries": inserted, "namespaces": len(cleared)}
