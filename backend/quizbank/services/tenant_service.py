from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from quizbank.core.config import settings
from quizbank.models.tenant import Tenant


def get_default_tenant(db: Session) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.slug == settings.DEFAULT_TENANT_SLUG).first()


def resolve_tenant_id(db: Session, tenant_id: Optional[int]) -> Optional[int]:
    """Explicit tenant wins; otherwise the default tenant (None if it does not exist)."""
    if tenant_id is not None:
        return int(tenant_id)
    tenant = get_default_tenant(db)
    return int(tenant.id) if tenant else None
