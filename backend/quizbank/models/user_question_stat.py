from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from quizbank.db.base_class import Base


class UserQuestionStat(Base):
    """Latest answer state of one user on one question.

    theme/subtheme/group are copies of the question's taxonomy so modal
    filters never need to join `questions`. (user_id, question_id) is not
    unique at the schema level; writers upsert on the first row found.
    """

    __tablename__ = "user_question_stats"
    __table_args__ = (
        Index("ix_user_question_stats_user_question", "user_id", "question_id"),
        Index("ix_user_question_stats_user_incorrect", "user_id", "is_incorrect"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    question_id: Mapped[int] = mapped_column(ForeignKey("questions.id"), index=True, nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(ForeignKey("tenants.id"), index=True, nullable=True)

    has_answered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    is_incorrect: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    theme_id: Mapped[int | None] = mapped_column(ForeignKey("themes.id"), nullable=True)
    subtheme_id: Mapped[int | None] = mapped_column(ForeignKey("subthemes.id"), nullable=True)
    group_id: Mapped[int | None] = mapped_column(ForeignKey("question_groups.id"), nullable=True)
