"""Display configuration for questionnaire answers.

Order ranges split the catalog into profile questions and preference
questions, and into the categories shown on profile and admin screens.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

from ..questionnaire_loader import Question
from .dependency_resolver import is_answered

PROFILE_GROUP = (1, 18)
PREFERENCES_GROUP = (19, 25)


@dataclass(frozen=True)
class QuestionCategory:
    name: str
    min_order: int
    max_order: int
    description: str = ""

    def contains(self, question: Question) -> bool:
        return self.min_order <= question.order <= self.max_order


PROFILE_CATEGORIES: tuple[QuestionCategory, ...] = (
    QuestionCategory("Basic Identity", 1, 5, "Essential personal information"),
    QuestionCategory("Dating Preferences", 6, 6, "Who you're looking for"),
    QuestionCategory("Personal Background", 7, 10, "Education, appearance, and cultural background"),
    QuestionCategory("Lifestyle", 11, 12, "Daily habits and choices"),
    QuestionCategory("Relationship Goals", 13, 17, "What you're looking for in a relationship"),
    QuestionCategory("Personality", 18, 18, "Your personality type"),
)

PREFERENCE_CATEGORIES: tuple[QuestionCategory, ...] = (
    QuestionCategory("Compatibility Preferences", 19, 25, "What matters most to you in a match"),
)

ALL_CATEGORIES = PROFILE_CATEGORIES + PREFERENCE_CATEGORIES

QUESTION_SUMMARIES: dict[str, str] = {
    "name": "Name",
    "date_of_birth": "Age",
    "gender": "Gender",
    "city": "Location",
    "instagram_contact": "Instagram",
    "dating_preference": "Looking for",
    "education_level": "Education",
    "education_importance": "Education importance",
    "height": "Height",
    "height_preference": "Height preference",
    "ethnicity": "Ethnicity",
    "ethnicity_importance": "Ethnicity importance",
    "appearance_importance": "Looks importance",
    "religion": "Religion",
    "religion_importance": "Religion importance",
    "alcohol": "Drinking",
    "smoking": "Smoking",
    "marriage": "Marriage plans",
    "marriage_timeline": "Marriage timeline",
    "age_importance": "Age importance",
    "income_importance": "Income importance",
    "interests": "Interests",
    "relationship_values": "Relationship values",
    "relationship_keys": "Key elements",
    "mbti": "Personality type",
}

ADMIN_VIEW_SECTIONS: tuple[dict[str, Any], ...] = (
    {
        "id": "basic_info",
        "title": "Basic Information",
        "question_ids": ["name", "date_of_birth", "gender", "city", "instagram_contact"],
        "always_show": True,
    },
    {
        "id": "dating_relationship",
        "title": "Dating & Relationship Goals",
        "question_ids": ["dating_preference", "marriage", "marriage_timeline", "relationship_values", "relationship_keys"],
    },
    {
        "id": "physical_appearance",
        "title": "Physical & Appearance",
        "question_ids": ["height", "height_preference", "appearance_importance"],
    },
    {
        "id": "background_culture",
        "title": "Background & Culture",
        "question_ids": ["ethnicity", "ethnicity_importance", "religion", "religion_importance"],
    },
    {
        "id": "education_income",
        "title": "Education & Income",
        "question_ids": ["education_level", "education_importance", "income_importance"],
    },
    {
        "id": "lifestyle",
        "title": "Lifestyle",
        "question_ids": ["alcohol", "smoking", "interests"],
    },
    {
        "id": "personality",
        "title": "Personality & Compatibility",
        "question_ids": ["mbti", "age_importance"],
    },
)


def _in_range(questions: Iterable[Question], bounds: tuple[int, int]) -> list[Question]:
    lo, hi = bounds
    return sorted((q for q in questions if lo <= q.order <= hi), key=lambda q: q.order)


def profile_questions(questions: Iterable[Question]) -> list[Question]:
    return _in_range(questions, PROFILE_GROUP)


def preference_questions(questions: Iterable[Question]) -> list[Question]:
    return _in_range(questions, PREFERENCES_GROUP)


def group_by_category(
    questions: Iterable[Question],
    categories: Iterable[QuestionCategory] = ALL_CATEGORIES,
) -> list[tuple[QuestionCategory, list[Question]]]:
    questions = list(questions)
    out: list[tuple[QuestionCategory, list[Question]]] = []
    for category in categories:
        members = sorted((q for q in questions if category.contains(q)), key=lambda q: q.order)
        if members:
            out.append((category, members))
    return out


def question_summary(question: Question) -> str:
    return QUESTION_SUMMARIES.get(question.id) or question.text.split("?")[0]


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and "-" in value:
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def calculate_age(date_of_birth: Any, today: date | None = None) -> int | None:
    born = _parse_date(date_of_birth)
    if born is None:
        return None
    today = today or date.today()
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def format_answer(answer: Any) -> str:
    if not is_answered(answer):
        return "Not answered"
    if isinstance(answer, (list, tuple)):
        return ", ".join(str(a) for a in answer)
    parsed = _parse_date(answer)
    if parsed is not None:
        return parsed.isoformat()
    if isinstance(answer, dict):
        return ", ".join(f"{k}: {v}" for k, v in answer.items())
    return str(answer)


def display_value(question: Question, answer: Any, profile: dict[str, Any] | None = None) -> str:
    if question.id == "date_of_birth" and answer:
        age = calculate_age(answer)
        return f"{age} years old" if age else format_answer(answer)
    if question.id == "name" and profile:
        full = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
        if full:
            return full
    return format_answer(answer)


def admin_view_sections(questions: Iterable[Question], answers: dict[str, Any]) -> list[dict[str, Any]]:
    by_id = {q.id: q for q in questions}
    out: list[dict[str, Any]] = []
    for section in ADMIN_VIEW_SECTIONS:
        rows = []
        for qid in section["question_ids"]:
            question = by_id.get(qid)
            if question is None:
                continue
            answer = answers.get(qid)
            if not is_answered(answer) and not section.get("always_show"):
                continue
            rows.append({"question_id": qid, "label": question_summary(question), "answer": answer, "display": format_answer(answer)})
        if rows:
            out.append({"id": section["id"], "title": section["title"], "questions": rows})
    return out


def completion_percentage(answers: dict[str, Any], questions: Iterable[Question]) -> int:
    """Half-up share of required questions that are answered.

    Optional questions never hold progress back; a set with nothing required
    is complete once it has any questions at all.
    """
    questions = list(questions)
    if not questions:
        return 0
    required = [q for q in questions if q.required]
    if not required:
        return 100
    answered = sum(1 for q in required if is_answered(answers.get(q.id)))
    return int(answered * 100 / len(required) + 0.5)
