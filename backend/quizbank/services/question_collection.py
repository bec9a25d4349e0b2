"""Question-ID collection for custom quizzes.

Everything here works in bounded units (one page, one node, one sampling
round) so the workflow can persist its cursor between calls.

Override rule: a selected group suppresses its subtheme and theme, a
selected subtheme suppresses its theme. A question matches if its group is
selected, or its subtheme is selected and not overridden, or its theme is
selected and not overridden (first match wins).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from quizbank.models.question import Question
from quizbank.models.user_bookmark import UserBookmark
from quizbank.models.user_question_stat import UserQuestionStat
from quizbank.services.aggregate_store import AggregateStore
from quizbank.services.aggregates import RANDOM_BY_LEVEL, RANDOM_QUESTIONS

logger = logging.getLogger(__name__)


class QuestionMode(str, enum.Enum):
    all = "all"
    unanswered = "unanswered"
    incorrect = "incorrect"
    bookmarked = "bookmarked"


LEVEL_FIELDS = {
    "group": Question.group_id,
    "subtheme": Question.subtheme_id,
    "theme": Question.theme_id,
}


def _int_list(values: Optional[Iterable[Any]]) -> List[int]:
    out: List[int] = []
    for v in values or []:
        i = int(v)
        if i not in out:
            out.append(i)
    return out


def _int_map(values: Optional[Dict[Any, Any]]) -> Dict[int, int]:
    return {int(k): int(v) for k, v in (values or {}).items() if v is not None}


@dataclass
class HierarchySelection:
    themes: List[int] = field(default_factory=list)
    subthemes: List[int] = field(default_factory=list)
    groups: List[int] = field(default_factory=list)
    group_to_subtheme: Dict[int, int] = field(default_factory=dict)
    subtheme_to_theme: Dict[int, int] = field(default_factory=dict)

    @classmethod
    def from_input(cls, data: Dict[str, Any]) -> "HierarchySelection":
        # JSON object keys come back as strings
        return cls(
            themes=_int_list(data.get("selected_themes")),
            subthemes=_int_list(data.get("selected_subthemes")),
            groups=_int_list(data.get("selected_groups")),
            group_to_subtheme=_int_map(data.get("group_to_subtheme")),
            subtheme_to_theme=_int_map(data.get("subtheme_to_theme")),
        )

    @property
    def has_filters(self) -> bool:
        return bool(self.themes or self.subthemes or self.groups)


@dataclass
class HierarchyOverrides:
    overridden_subthemes: Set[int] = field(default_factory=set)
    overridden_themes: Set[int] = field(default_factory=set)
    groups_by_subtheme: Dict[int, List[int]] = field(default_factory=dict)


@dataclass
class Page:
    ids: List[int]
    continue_cursor: Optional[int]
    is_done: bool


def compute_overrides(
    groups: Sequence[int],
    subthemes: Sequence[int],
    group_to_subtheme: Dict[int, int],
    subtheme_to_theme: Dict[int, int],
) -> HierarchyOverrides:
    out = HierarchyOverrides()
    for g in groups:
        st = group_to_subtheme.get(int(g))
        if st is None:
            continue
        out.overridden_subthemes.add(st)
        out.groups_by_subtheme.setdefault(st, []).append(int(g))
        th = subtheme_to_theme.get(st)
        if th is not None:
            out.overridden_themes.add(th)
    for st in subthemes:
        th = subtheme_to_theme.get(int(st))
        if th is not None:
            out.overridden_themes.add(th)
    return out


def overrides_for(selection: HierarchySelection) -> HierarchyOverrides:
    return compute_overrides(
        selection.groups,
        selection.subthemes,
        selection.group_to_subtheme,
        selection.subtheme_to_theme,
    )


def matches_hierarchy(
    theme_id: Optional[int],
    subtheme_id: Optional[int],
    group_id: Optional[int],
    selection: HierarchySelection,
    overrides: HierarchyOverrides,
) -> bool:
    if group_id is not None and group_id in selection.groups:
        return True
    if (
        subtheme_id is not None
        and subtheme_id in selection.subthemes
        and subtheme_id not in overrides.overridden_subthemes
    ):
        return True
    if theme_id is not None and theme_id in selection.themes and theme_id not in overrides.overridden_themes:
        return True
    return False


def plan_hierarchy_nodes(selection: HierarchySelection, overrides: HierarchyOverrides) -> List[Tuple[str, int]]:
    """Nodes to page through, groups first. Overridden nodes are left out."""
    nodes: List[Tuple[str, int]] = [("group", g) for g in selection.groups]
    nodes += [("subtheme", s) for s in selection.subthemes if s not in overrides.overridden_subthemes]
    nodes += [("theme", t) for t in selection.themes if t not in overrides.overridden_themes]
    return nodes


def collect_hierarchy_page(
    db: Session,
    tenant_id: int,
    level: str,
    node_id: int,
    cursor: Optional[int],
    page_size: int,
) -> Page:
    """One keyset page (ordered by id) of the questions under one node."""
    column = LEVEL_FIELDS[level]
    q = db.query(Question.id).filter(Question.tenant_id == int(tenant_id), column == int(node_id))
    if cursor is not None:
        q = q.filter(Question.id > int(cursor))
    ids = [int(r[0]) for r in q.order_by(Question.id.asc()).limit(int(page_size)).all()]
    is_done = len(ids) < int(page_size)
    return Page(ids=ids, continue_cursor=ids[-1] if ids else cursor, is_done=is_done)


def _modal_query(db: Session, tenant_id: Optional[int], user_id: int, mode: QuestionMode):
    if mode == QuestionMode.bookmarked:
        model = UserBookmark
        q = db.query(model).filter(model.user_id == int(user_id))
    elif mode == QuestionMode.incorrect:
        model = UserQuestionStat
        q = db.query(model).filter(model.user_id == int(user_id), model.is_incorrect.is_(True))
    elif mode == QuestionMode.unanswered:
        # The answered set; unanswered is computed by subtraction
        model = UserQuestionStat
        q = db.query(model).filter(model.user_id == int(user_id), model.has_answered.is_(True))
    elif mode == QuestionMode.all:
        raise ValueError("question_mode=all has no modal table")
    else:
        raise ValueError(f"Unknown question mode: {mode}")
    if tenant_id is not None:
        q = q.filter(or_(model.tenant_id == int(tenant_id), model.tenant_id.is_(None)))
    return model, q


def collect_modal_page(
    db: Session,
    tenant_id: Optional[int],
    user_id: int,
    mode: QuestionMode,
    cursor: Optional[int],
    page_size: int,
) -> Tuple[List[Dict[str, Any]], Optional[int], bool]:
    """One page of the user's modal rows with their denormalized taxonomy.

    Returns (rows, continue_cursor, is_done). The cursor is the row id.
    """
    model, q = _modal_query(db, tenant_id, user_id, mode)
    if cursor is not None:
        q = q.filter(model.id > int(cursor))
    rows = q.order_by(model.id.asc()).limit(int(page_size)).all()
    out = [
        {
            "question_id": int(r.question_id),
            "theme_id": r.theme_id,
            "subtheme_id": r.subtheme_id,
            "group_id": r.group_id,
        }
        for r in rows
    ]
    next_cursor = int(rows[-1].id) if rows else cursor
    return out, next_cursor, len(rows) < int(page_size)


def filter_modal_rows_by_hierarchy(
    rows: Iterable[Dict[str, Any]],
    selection: HierarchySelection,
    overrides: HierarchyOverrides,
) -> List[int]:
    return [
        int(r["question_id"])
        for r in rows
        if matches_hierarchy(r.get("theme_id"), r.get("subtheme_id"), r.get("group_id"), selection, overrides)
    ]


def apply_modal_filter(mode: QuestionMode, candidates: Sequence[int], modal_ids: Iterable[int]) -> List[int]:
    """Intersect (incorrect/bookmarked) or subtract (unanswered), keeping candidate order."""
    modal: Optional[Set[int]] = {int(x) for x in modal_ids}
    if mode == QuestionMode.unanswered:
        want_member = False
    elif mode in (QuestionMode.incorrect, QuestionMode.bookmarked):
        want_member = True
    elif mode == QuestionMode.all:
        modal, want_member = None, True
    else:
        raise ValueError(f"Unknown question mode: {mode}")

    seen: Set[int] = set()
    out: List[int] = []
    for qid in candidates:
        qid = int(qid)
        if qid in seen:
            continue
        if modal is not None and (qid in modal) != want_member:
            continue
        seen.add(qid)
        out.append(qid)
    return out


def existing_question_ids(db: Session, tenant_id: int, ids: Sequence[int]) -> Set[int]:
    if not ids:
        return set()
    rows = db.query(Question.id).filter(Question.tenant_id == int(tenant_id), Question.id.in_([int(x) for x in ids])).all()
    return {int(r[0]) for r in rows}


def plan_aggregate_nodes(selection: HierarchySelection, overrides: HierarchyOverrides) -> List[Tuple[str, int]]:
    """Units of the aggregate strategy, one per workflow step.

    A selected subtheme that also has selected groups becomes a
    ("complement", subtheme) unit: the questions outside those groups, read
    page by page. Every other unit is one draw from a per-node sampling
    aggregate.
    """
    nodes: List[Tuple[str, int]] = [("group", g) for g in selection.groups]
    for st in selection.subthemes:
        nodes.append(("complement", st) if st in overrides.overridden_subthemes else ("subtheme", st))
    nodes += [("theme", t) for t in selection.themes if t not in overrides.overridden_themes]
    return nodes


def collect_complement_page(
    db: Session,
    tenant_id: int,
    subtheme_id: int,
    excluded_groups: Sequence[int],
    cursor: Optional[int],
    page_size: int,
) -> Page:
    q = db.query(Question.id).filter(Question.tenant_id == int(tenant_id), Question.subtheme_id == int(subtheme_id))
    if excluded_groups:
        q = q.filter(or_(Question.group_id.is_(None), Question.group_id.notin_([int(g) for g in excluded_groups])))
    if cursor is not None:
        q = q.filter(Question.id > int(cursor))
    ids = [int(r[0]) for r in q.order_by(Question.id.asc()).limit(int(page_size)).all()]
    return Page(ids=ids, continue_cursor=ids[-1] if ids else cursor, is_done=len(ids) < int(page_size))


def draw_aggregate_node(
    db: Session,
    store: AggregateStore,
    tenant_id: int,
    level: str,
    node_id: int,
    max_questions: int,
) -> List[int]:
    """One draw from a node's sampling aggregate, resolved against `questions`."""
    definition = RANDOM_BY_LEVEL[level]
    drawn = store.random_draw(definition.name, f"{int(tenant_id)}:{int(node_id)}", max_questions)
    alive = existing_question_ids(db, tenant_id, drawn)
    return [qid for qid in drawn if qid in alive]


def collect_random_global(db: Session, store: AggregateStore, tenant_id: int, max_questions: int) -> List[int]:
    drawn = store.random_draw(RANDOM_QUESTIONS.name, str(int(tenant_id)), max_questions)
    alive = existing_question_ids(db, tenant_id, drawn)
    return [qid for qid in drawn if qid in alive]


def _modal_hits(db: Session, user_id: int, mode: QuestionMode, ids: Sequence[int]) -> Set[int]:
    if not ids:
        return set()
    if mode == QuestionMode.bookmarked:
        model = UserBookmark
        q = db.query(model.question_id).filter(model.user_id == int(user_id))
    elif mode == QuestionMode.incorrect:
        model = UserQuestionStat
        q = db.query(model.question_id).filter(model.user_id == int(user_id), model.is_incorrect.is_(True))
    elif mode == QuestionMode.unanswered:
        model = UserQuestionStat
        q = db.query(model.question_id).filter(model.user_id == int(user_id), model.has_answered.is_(True))
    elif mode == QuestionMode.all:
        return set()
    else:
        raise ValueError(f"Unknown question mode: {mode}")
    rows = q.filter(model.question_id.in_([int(x) for x in ids])).all()
    return {int(r[0]) for r in rows}


def sample_candidates(
    db: Session,
    store: AggregateStore,
    tenant_id: int,
    user_id: int,
    mode: QuestionMode,
    seen: Iterable[int],
    batch_size: int,
) -> Tuple[List[int], List[int], bool]:
    """One sampling round from the tenant-wide sampling aggregate.

    Returns (accepted, drawn, exhausted). `exhausted` is set when the
    aggregate yields fewer fresh ids than requested.
    """
    drawn = store.random_draw(RANDOM_QUESTIONS.name, str(int(tenant_id)), batch_size, exclude=seen)
    exhausted = len(drawn) < int(batch_size)
    if not drawn:
        return [], [], True

    alive = existing_question_ids(db, tenant_id, drawn)
    hits = _modal_hits(db, user_id, mode, drawn)
    accepted = apply_modal_filter(mode, [qid for qid in drawn if qid in alive], hits)
    return accepted, drawn, exhausted
