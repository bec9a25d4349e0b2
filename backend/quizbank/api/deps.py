"""Common FastAPI dependencies.

Auth is demo-header based (X-User-Id, X-User-Role); the tenant may be
picked with X-Tenant-Id and otherwise falls back to the default tenant.
A minimal User row is created on first sight so foreign keys hold.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from quizbank.db.session import get_db
from quizbank.models.user import User
from quizbank.services.aggregate_store import AggregateStore, build_aggregate_store
from quizbank.services.tenant_service import resolve_tenant_id
from quizbank.services.triggers import DocumentWriter, build_trigger_engine
from quizbank.services.user_service import ensure_user_exists


def _normalize_role(role: Optional[str]) -> Optional[str]:
    if not role:
        return None
    r = str(role).strip().lower()
    if r in {"user", "admin"}:
        return r
    return None


def get_current_user_optional(
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
) -> Optional[User]:
    if not x_user_id:
        return None

    try:
        uid = int(str(x_user_id).strip())
    except ValueError:
        return None

    role = _normalize_role(x_user_role) or "user"
    return ensure_user_exists(db, uid, role=role)


def require_user(user: Optional[User] = Depends(get_current_user_optional)) -> User:
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    if _normalize_role(getattr(user, "role", None)) != "admin":
        raise HTTPException(status_code=403, detail="Admin role required")
    return user


def get_tenant_id(
    db: Session = Depends(get_db),
    x_tenant_id: Optional[str] = Header(default=None, alias="X-Tenant-Id"),
) -> Optional[int]:
    tenant_id = None
    if x_tenant_id:
        try:
            tenant_id = int(str(x_tenant_id).strip())
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid X-Tenant-Id")
    return resolve_tenant_id(db, tenant_id)


def get_aggregate_store() -> AggregateStore:
    return build_aggregate_store()


def get_document_writer(
    db: Session = Depends(get_db),
    store: AggregateStore = Depends(get_aggregate_store),
) -> DocumentWriter:
    return DocumentWriter(db, build_trigger_engine(store))
