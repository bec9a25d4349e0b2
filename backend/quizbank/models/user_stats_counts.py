from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from quizbank.db.base_class import Base


class UserStatsCounts(Base):
    """Per-user counters for fast dashboard reads.

    The *_by_* maps are {node_id (str): count}.
    """

    __tablename__ = "user_stats_counts"
    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_user_stats_counts_tenant_user"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(ForeignKey("tenants.id"), index=True, nullable=True)

    total_answered: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_incorrect: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_bookmarked: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))

    answered_by_theme: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    answered_by_subtheme: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    answered_by_group: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    incorrect_by_theme: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    incorrect_by_subtheme: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    incorrect_by_group: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    bookmarked_by_theme: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    bookmarked_by_subtheme: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    bookmarked_by_group: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
