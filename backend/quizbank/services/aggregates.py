"""Aggregate definitions over the questions / stats / bookmarks tables.

Each definition maps a document snapshot (a dict of column values) to the
namespace it belongs to, or to None when the document is not a member
(question without subtheme, stat that is not incorrect, ...).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

Doc = Dict[str, Any]

QUESTIONS = "questions"
USER_QUESTION_STATS = "user_question_stats"
USER_BOOKMARKS = "user_bookmarks"


@dataclass(frozen=True)
class AggregateDefinition:
    name: str
    table: str
    # Fields whose change moves a document between namespaces (or in/out).
    key_fields: Tuple[str, ...]
    namespace: Callable[[Doc], Optional[str]]
    id_field: str = "id"

    def namespace_for(self, doc: Doc) -> Optional[str]:
        return self.namespace(doc)

    def doc_id(self, doc: Doc) -> int:
        return int(doc[self.id_field])

    def key_changed(self, old: Doc, new: Doc) -> bool:
        return any(old.get(f) != new.get(f) for f in self.key_fields)


def _scoped(*fields: str, flag: Optional[str] = None) -> Callable[[Doc], Optional[str]]:
    def namespace(doc: Doc) -> Optional[str]:
        if flag is not None and not doc.get(flag):
            return None
        parts = []
        for f in fields:
            value = doc.get(f)
            if value is None:
                return None
            parts.append(str(value))
        return ":".join(parts)

    return namespace


# ===== questions =====
TOTAL_QUESTION_COUNT = AggregateDefinition("total_question_count", QUESTIONS, ("tenant_id",), _scoped("tenant_id"))
QUESTION_COUNT_BY_THEME = AggregateDefinition(
    "question_count_by_theme", QUESTIONS, ("tenant_id", "theme_id"), _scoped("tenant_id", "theme_id")
)
QUESTION_COUNT_BY_SUBTHEME = AggregateDefinition(
    "question_count_by_subtheme", QUESTIONS, ("tenant_id", "subtheme_id"), _scoped("tenant_id", "subtheme_id")
)
QUESTION_COUNT_BY_GROUP = AggregateDefinition(
    "question_count_by_group", QUESTIONS, ("tenant_id", "group_id"), _scoped("tenant_id", "group_id")
)
RANDOM_QUESTIONS = AggregateDefinition("random_questions", QUESTIONS, ("tenant_id",), _scoped("tenant_id"))
RANDOM_QUESTIONS_BY_THEME = AggregateDefinition(
    "random_questions_by_theme", QUESTIONS, ("tenant_id", "theme_id"), _scoped("tenant_id", "theme_id")
)
RANDOM_QUESTIONS_BY_SUBTHEME = AggregateDefinition(
    "random_questions_by_subtheme", QUESTIONS, ("tenant_id", "subtheme_id"), _scoped("tenant_id", "subtheme_id")
)
RANDOM_QUESTIONS_BY_GROUP = AggregateDefinition(
    "random_questions_by_group", QUESTIONS, ("tenant_id", "group_id"), _scoped("tenant_id", "group_id")
)

QUESTION_AGGREGATES = (
    TOTAL_QUESTION_COUNT,
    QUESTION_COUNT_BY_THEME,
    QUESTION_COUNT_BY_SUBTHEME,
    QUESTION_COUNT_BY_GROUP,
    RANDOM_QUESTIONS,
    RANDOM_QUESTIONS_BY_THEME,
    RANDOM_QUESTIONS_BY_SUBTHEME,
    RANDOM_QUESTIONS_BY_GROUP,
)

RANDOM_BY_LEVEL = {
    "theme": RANDOM_QUESTIONS_BY_THEME,
    "subtheme": RANDOM_QUESTIONS_BY_SUBTHEME,
    "group": RANDOM_QUESTIONS_BY_GROUP,
}


# ===== per-user stats / bookmarks (members are question ids) =====
def _user_aggregate(name: str, table: str, node_field: Optional[str], flag: Optional[str]) -> AggregateDefinition:
    fields = ("user_id",) if node_field is None else ("user_id", node_field)
    key_fields = fields + ("question_id",) + ((flag,) if flag else ())
    return AggregateDefinition(name, table, key_fields, _scoped(*fields, flag=flag), id_field="question_id")


ANSWERED_BY_USER = _user_aggregate("answered_by_user", USER_QUESTION_STATS, None, "has_answered")
ANSWERED_BY_THEME_BY_USER = _user_aggregate("answered_by_theme_by_user", USER_QUESTION_STATS, "theme_id", "has_answered")
ANSWERED_BY_SUBTHEME_BY_USER = _user_aggregate(
    "answered_by_subtheme_by_user", USER_QUESTION_STATS, "subtheme_id", "has_answered"
)
ANSWERED_BY_GROUP_BY_USER = _user_aggregate("answered_by_group_by_user", USER_QUESTION_STATS, "group_id", "has_answered")
INCORRECT_BY_USER = _user_aggregate("incorrect_by_user", USER_QUESTION_STATS, None, "is_incorrect")
INCORRECT_BY_THEME_BY_USER = _user_aggregate("incorrect_by_theme_by_user", USER_QUESTION_STATS, "theme_id", "is_incorrect")
INCORRECT_BY_SUBTHEME_BY_USER = _user_aggregate(
    "incorrect_by_subtheme_by_user", USER_QUESTION_STATS, "subtheme_id", "is_incorrect"
)
INCORRECT_BY_GROUP_BY_USER = _user_aggregate("incorrect_by_group_by_user", USER_QUESTION_STATS, "group_id", "is_incorrect")

BOOKMARKED_BY_USER = _user_aggregate("bookmarked_by_user", USER_BOOKMARKS, None, None)
BOOKMARKED_BY_THEME_BY_USER = _user_aggregate("bookmarked_by_theme_by_user", USER_BOOKMARKS, "theme_id", None)
BOOKMARKED_BY_SUBTHEME_BY_USER = _user_aggregate("bookmarked_by_subtheme_by_user", USER_BOOKMARKS, "subtheme_id", None)
BOOKMARKED_BY_GROUP_BY_USER = _user_aggregate("bookmarked_by_group_by_user", USER_BOOKMARKS, "group_id", None)

USER_STAT_AGGREGATES = (
    ANSWERED_BY_USER,
    ANSWERED_BY_THEME_BY_USER,
    ANSWERED_BY_SUBTHEME_BY_USER,
    ANSWERED_BY_GROUP_BY_USER,
    INCORRECT_BY_USER,
    INCORRECT_BY_THEME_BY_USER,
    INCORRECT_BY_SUBTHEME_BY_USER,
    INCORRECT_BY_GROUP_BY_USER,
)
USER_BOOKMARK_AGGREGATES = (
    BOOKMARKED_BY_USER,
    BOOKMARKED_BY_THEME_BY_USER,
    BOOKMARKED_BY_SUBTHEME_BY_USER,
    BOOKMARKED_BY_GROUP_BY_USER,
)

ALL_AGGREGATES = QUESTION_AGGREGATES + USER_STAT_AGGREGATES + USER_BOOKMARK_AGGREGATES
