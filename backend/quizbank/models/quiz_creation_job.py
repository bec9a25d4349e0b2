from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from quizbank.db.base_class import Base


class JobStatus(str, enum.Enum):
    pending = "pending"
    collecting_questions = "collecting_questions"
    selecting_questions = "selecting_questions"
    creating_quiz = "creating_quiz"
    completed = "completed"
    failed = "failed"


TERMINAL_STATUSES = {JobStatus.completed.value, JobStatus.failed.value}


class QuizCreationJob(Base):
    """Progress record of one custom quiz creation.

    `step_state_json` holds the persisted cursor and partial results between
    workflow steps. Rows are never deleted.
    """

    __tablename__ = "quiz_creation_jobs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(ForeignKey("tenants.id"), index=True, nullable=True)

    status: Mapped[str] = mapped_column(String(32), index=True, nullable=False, default=JobStatus.pending.value)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    progress_message: Mapped[str | None] = mapped_column(String(255), nullable=True)

    input_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    step_state_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    step_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    workflow_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)

    quiz_id: Mapped[int | None] = mapped_column(ForeignKey("custom_quizzes.id"), nullable=True)
    question_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    error: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
