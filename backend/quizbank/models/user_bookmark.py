from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from quizbank.db.base_class import Base


class UserBookmark(Base):
    __tablename__ = "user_bookmarks"
    __table_args__ = (Index("ix_user_bookmarks_user_question", "user_id", "question_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    question_id: Mapped[int] = mapped_column(ForeignKey("questions.id"), index=True, nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(ForeignKey("tenants.id"), index=True, nullable=True)

    # Denormalized from the question
    theme_id: Mapped[int | None] = mapped_column(ForeignKey("themes.id"), nullable=True)
    subtheme_id: Mapped[int | None] = mapped_column(ForeignKey("subthemes.id"), nullable=True)
    group_id: Mapped[int | None] = mapped_column(ForeignKey("question_groups.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
