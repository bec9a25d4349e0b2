from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class QuestionCreateRequest(BaseModel):
    theme_id: int
    subtheme_id: Optional[int] = None
    group_id: Optional[int] = None
    title: str
    question_text: str = ""
    explanation_text: Optional[str] = None
    alternatives: List[str] = Field(default_factory=list)
    correct_alternative_index: int = 0
    question_code: Optional[str] = None
    is_public: bool = False


class QuestionUpdateRequest(BaseModel):
    theme_id: Optional[int] = None
    subtheme_id: Optional[int] = None
    group_id: Optional[int] = None
    title: Optional[str] = None
    question_text: Optional[str] = None
    explanation_text: Optional[str] = None
    alternatives: Optional[List[str]] = None
    correct_alternative_index: Optional[int] = None
    question_code: Optional[str] = None
    is_public: Optional[bool] = None


class AnswerRequest(BaseModel):
    is_correct: bool
