from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from quizbank.db.base_class import Base


class CustomQuiz(Base):
    __tablename__ = "custom_quizzes"

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[int | None] = mapped_column(ForeignKey("tenants.id"), index=True, nullable=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Ordered; at most QUIZ_MAX_QUESTIONS entries
    question_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    test_mode: Mapped[str] = mapped_column(String(16), nullable=False)  # study | exam
    question_mode: Mapped[str] = mapped_column(String(16), nullable=False)  # all | unanswered | incorrect | bookmarked

    selected_themes: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    selected_subthemes: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    selected_groups: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
