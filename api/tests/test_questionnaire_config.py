from datetime import date

from app.config import QUESTIONS_PATH
from app.questionnaire_loader import Question, QuestionCatalog, read_catalog_file
from app.services.questionnaire_config import (
    admin_view_sections,
    calculate_age,
    completion_percentage,
    display_value,
    format_answer,
    group_by_category,
    preference_questions,
    profile_questions,
    question_summary,
)


def _default_catalog():
    return QuestionCatalog.from_rows(read_catalog_file(QUESTIONS_PATH))


def test_profile_and_preference_groups_split_by_order():
    catalog = _default_catalog()
    profile = profile_questions(catalog)
    prefs = preference_questions(catalog)
    assert len(profile) == 18
    assert len(prefs) == 7
    assert prefs[0].id == "education_importance"
    assert {q.id for q in prefs} >= {"religion_importance", "height_preference", "age_importance"}


def test_group_by_category_drops_empty_groups():
    questions = [Question(id="mbti", order=18, type="text"), Question(id="name", order=1, type="text")]
    groups = group_by_category(questions)
    assert [c.name for c, _ in groups] == ["Basic Identity", "Personality"]


def test_completion_counts_required_questions():
    questions = [
        Question(id="name", order=1, type="text"),
        Question(id="city", order=2, type="text"),
        Question(id="mbti", order=3, type="text", required=False),
    ]
    assert completion_percentage({}, questions) == 0
    assert completion_percentage({"mbti": "INTJ"}, questions) == 0
    assert completion_percentage({"name": "A"}, questions) == 50
    assert completion_percentage({"name": "A", "city": "Rome"}, questions) == 100
    assert completion_percentage({}, [Question(id="mbti", order=1, type="text", required=False)]) == 100
    assert completion_percentage({}, []) == 0


def test_question_summary_falls_back_to_text():
    assert question_summary(Question(id="religion", order=10, type="text", text="x")) == "Religion"
    assert question_summary(Question(id="pets", order=30, type="text", text="Do you like pets? Be honest")) == "Do you like pets"


def test_format_answer():
    assert format_answer(None) == "Not answered"
    assert format_answer("") == "Not answered"
    assert format_answer(["Travel", "Music"]) == "Travel, Music"
    assert format_answer("1990-05-01T00:00:00Z") == "1990-05-01"
    assert format_answer(7) == "7"


def test_calculate_age_respects_birthday():
    today = date(2024, 5, 1)
    assert calculate_age("1990-05-01", today) == 34
    assert calculate_age("1990-05-02", today) == 33
    assert calculate_age("not a date", today) is None


def test_display_value_uses_profile_and_age():
    name = Question(id="name", order=1, type="text")
    assert display_value(name, ["J", "D"], {"first_name": "John", "last_name": "Doe"}) == "John Doe"
    assert display_value(name, ["J", "D"], None) == "J, D"

    dob = Question(id="date_of_birth", order=2, type="date")
    expected = calculate_age("1990-05-01")
    assert display_value(dob, "1990-05-01") == f"{expected} years old"


def test_admin_sections_always_show_basic_info():
    catalog = _default_catalog()
    sections = admin_view_sections(catalog, {"religion": "Buddhist"})

    assert [s["id"] for s in sections] == ["basic_info", "background_culture"]
    basic = sections[0]
    assert [r["question_id"] for r in basic["questions"]] == [
        "name",
        "date_of_birth",
        "gender",
        "city",
        "instagram_contact",
    ]
    assert basic["questions"][0]["display"] == "Not answered"
    assert sections[1]["questions"] == [
        {"question_id": "religion", "label": "Religion", "answer": "Buddhist", "display": "Buddhist"}
    ]
