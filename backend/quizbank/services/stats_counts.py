from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from quizbank.models.user_stats_counts import UserStatsCounts

KINDS = ("answered", "incorrect", "bookmarked")
LEVELS = (("theme", "theme_id"), ("subtheme", "subtheme_id"), ("group", "group_id"))


def find_counts(db: Session, user_id: int, tenant_id: Optional[int]) -> Optional[UserStatsCounts]:
    q = db.query(UserStatsCounts).filter(UserStatsCounts.user_id == int(user_id))
    if tenant_id is not None:
        q = q.filter(UserStatsCounts.tenant_id == int(tenant_id))
    return q.first()


def get_or_create_counts(db: Session, user_id: int, tenant_id: Optional[int]) -> UserStatsCounts:
    row = find_counts(db, user_id, tenant_id)
    if row:
        return row
    row = UserStatsCounts(
        user_id=int(user_id),
        tenant_id=tenant_id,
        total_answered=0,
        total_incorrect=0,
        total_bookmarked=0,
        answered_by_theme={},
        answered_by_subtheme={},
        answered_by_group={},
        incorrect_by_theme={},
        incorrect_by_subtheme={},
        incorrect_by_group={},
        bookmarked_by_theme={},
        bookmarked_by_subtheme={},
        bookmarked_by_group={},
    )
    db.add(row)
    db.flush()
    return row


def _shift(counts: UserStatsCounts, attr: str, node_id: Any, delta: int) -> None:
    # JSON columns are replaced, never mutated in place
    m = dict(getattr(counts, attr) or {})
    key = str(node_id)
    m[key] = max(0, int(m.get(key, 0)) + delta)
    setattr(counts, attr, m)


def bump(counts: UserStatsCounts, kind: str, doc: Dict[str, Any], delta: int) -> None:
    """Add `delta` to the total and to every taxonomy level `doc` carries."""
    total_attr = f"total_{kind}"
    setattr(counts, total_attr, max(0, int(getattr(counts, total_attr) or 0) + delta))
    for level, field in LEVELS:
        node_id = doc.get(field)
        if node_id is not None:
            _shift(counts, f"{kind}_by_{level}", node_id, delta)
    counts.last_updated = datetime.now(timezone.utc)


def move(counts: UserStatsCounts, kind: str, level: str, old_id: Any, new_id: Any) -> bool:
    """Move one count from old_id to new_id at `level`. Returns True if anything changed.

    Theme is required on questions, so a theme move needs both ends.
    """
    if level == "theme" and (old_id is None or new_id is None):
        return False
    attr = f"{kind}_by_{level}"
    changed = False
    if old_id is not None:
        _shift(counts, attr, old_id, -1)
        changed = True
    if new_id is not None:
        _shift(counts, attr, new_id, 1)
        changed = True
    return changed


def counts_to_dict(counts: Optional[UserStatsCounts]) -> Dict[str, Any]:
    if counts is None:
        return {
            "total_answered": 0,
            "total_incorrect": 0,
            "total_bookmarked": 0,
            "by_theme": {},
            "by_subtheme": {},
            "by_group": {},
            "last_updated": None,
        }
    out: Dict[str, Any] = {
        "total_answered": int(counts.total_answered or 0),
        "total_incorrect": int(counts.total_incorrect or 0),
        "total_bookmarked": int(counts.total_bookmarked or 0),
        "last_updated": counts.last_updated.isoformat() if counts.last_updated else None,
    }
    for level, _ in LEVELS:
        out[f"by_{level}"] = {kind: dict(getattr(counts, f"{kind}_by_{level}") or {}) for kind in KINDS}
    return out
