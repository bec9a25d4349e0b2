from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from quizbank.db.base_class import Base


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("ix_questions_tenant_theme", "tenant_id", "theme_id"),
        Index("ix_questions_tenant_subtheme", "tenant_id", "subtheme_id"),
        Index("ix_questions_tenant_group", "tenant_id", "group_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True, nullable=False)

    # Group ⊆ Subtheme ⊆ Theme (checked by questions_service)
    theme_id: Mapped[int] = mapped_column(ForeignKey("themes.id"), nullable=False)
    subtheme_id: Mapped[int | None] = mapped_column(ForeignKey("subthemes.id"), nullable=True)
    group_id: Mapped[int | None] = mapped_column(ForeignKey("question_groups.id"), nullable=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    normalized_title: Mapped[str] = mapped_column(String(500), index=True, nullable=False)
    question_code: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    explanation_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    alternatives: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    correct_alternative_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
