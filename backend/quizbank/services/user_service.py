from __future__ import annotations

from sqlalchemy.orm import Session

from quizbank.models.user import User


def ensure_user_exists(db: Session, user_id: int, *, role: str = "user") -> User:
    """Return the user row for `user_id`, creating a minimal one if missing.

    Demo headers may carry any numeric id, while jobs, stats and quizzes hold
    foreign keys to `users`. An existing row keeps its stored role.
    """
    uid = int(user_id)
    user = db.get(User, uid)
    if user is not None:
        return user

    user = User(id=uid, email=f"user-{uid}@quizbank.local", full_name=f"User {uid}", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
