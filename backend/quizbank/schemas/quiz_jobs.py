from __future__ import annotations

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field

TestMode = Literal["study", "exam"]
QuestionModeIn = Literal["all", "unanswered", "incorrect", "bookmarked"]


class CreateQuizJobRequest(BaseModel):
    name: str
    description: str = ""
    test_mode: TestMode = "study"
    question_mode: QuestionModeIn = "all"
    num_questions: Optional[int] = None
    selected_themes: List[int] = Field(default_factory=list)
    selected_subthemes: List[int] = Field(default_factory=list)
    selected_groups: List[int] = Field(default_factory=list)
    # child id -> parent id, precomputed by the client
    group_to_subtheme: Dict[int, int] = Field(default_factory=dict)
    subtheme_to_theme: Dict[int, int] = Field(default_factory=dict)

