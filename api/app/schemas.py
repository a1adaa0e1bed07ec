from typing import Any
from pydantic import BaseModel, Field


class QuestionOut(BaseModel):
    id: str
    order: int
    type: str
    text: str = ""
    subtitle: str | None = None
    help_text: str | None = None
    options: list[Any] = Field(default_factory=list)
    required: bool = True
    min: float | None = None
    max: float | None = None
    icon_name: str | None = None
    summary: str = ""


class VisibleQuestionsResponse(BaseModel):
    questions: list[QuestionOut]
    resume_index: int


class AnswersResponse(BaseModel):
    answers: dict[str, Any]
    resume_index: int
    completion_percentage: int
    missing_required: list[str]


class SaveAnswerRequest(BaseModel):
    question_id: str = Field(min_length=1)
    answer: Any = None


class SaveAnswerResponse(BaseModel):
    status: str
    persisted: bool
    answers: dict[str, Any]
    visible_question_ids: list[str]


class CompatibilityResponse(BaseModel):
    user_a: str
    user_b: str
    a_to_b: int
    b_to_a: int
    average: int


class ComparisonRow(BaseModel):
    question_id: str
    preference_id: str
    question_text: str
    preference_value: Any
    profile_value: Any
    score: float
    is_match: bool
    importance_label: str


class ComparisonResponse(BaseModel):
    user_a: str
    user_b: str
    rows: list[ComparisonRow]


class SuggestedMatch(BaseModel):
    user_id: str
    a_to_b: int
    b_to_a: int
    average: int


class SuggestMatchesResponse(BaseModel):
    user_id: str
    suggestions: list[SuggestedMatch]
