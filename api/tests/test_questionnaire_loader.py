import json

import pytest
from sqlalchemy.exc import SQLAlchemyError

import app.questionnaire_loader as loader
from app import repo
from app.errors import LoadFailure
from app.questionnaire_loader import Question, QuestionCatalog, question_from_row, read_catalog_file, validate_catalog


@pytest.fixture(autouse=True)
def _fresh_catalog_cache():
    loader.clear_catalog_cache()
    yield
    loader.clear_catalog_cache()


def _codes(errors):
    return sorted(e["code"] for e in errors)


def test_question_from_stored_row():
    q = question_from_row(
        {
            "id": "name",
            "version": 2,
            "question_order": 1,
            "question_type": "text",
            "question_text_en": "What's your name?",
            "is_required": False,
            "profile_field_mapping": "first_name, last_name",
            "options": None,
        }
    )
    assert q.order == 1
    assert q.text == "What's your name?"
    assert q.required is False
    assert q.profile_field_mapping == ("first_name", "last_name")
    assert q.version == 2


def test_question_from_file_entry_with_scale_bounds():
    q = question_from_row({"id": "age_importance", "order": 24, "type": "scale", "options": {"min": 0, "max": 10}})
    assert q.options == ()
    assert (q.min, q.max) == (0.0, 10.0)
    assert q.required is True
    assert q.is_conditional is False


def test_validate_catalog_reports_structural_errors():
    questions = [
        Question(id="a", order=1, type="text"),
        Question(id="a", order=2, type="text"),
        Question(id="", order=3, type="text"),
        Question(id="b", order=4, type="dropdown"),
        Question(id="c", order=5, type="text", conditional_on="missing", conditional_value="x"),
        Question(id="d", order=6, type="text", conditional_on="e", conditional_value="x"),
        Question(id="e", order=7, type="text"),
    ]
    assert _codes(validate_catalog(questions)) == [
        "duplicate_question_id",
        "forward_condition",
        "invalid_question_type",
        "missing_question_id",
        "unknown_condition_parent",
    ]


def test_self_reference_is_a_forward_condition():
    errors = validate_catalog([Question(id="a", order=1, type="text", conditional_on="a", conditional_value="x")])
    assert _codes(errors) == ["forward_condition"]


def test_from_rows_raises_with_errors():
    with pytest.raises(LoadFailure) as excinfo:
        QuestionCatalog.from_rows([{"id": "a", "order": 1, "type": "bogus"}])
    assert _codes(excinfo.value.errors) == ["invalid_question_type"]


def test_catalog_orders_and_indexes_questions():
    catalog = QuestionCatalog.from_rows(
        [
            {"id": "b", "order": 2, "type": "text", "conditional_on": "a", "conditional_value": "Yes"},
            {"id": "a", "order": 1, "type": "single_choice", "options": ["Yes", "No"]},
        ]
    )
    assert [q.id for q in catalog.load()] == ["a", "b"]
    assert catalog.get("b").conditional_on == "a"
    assert catalog.get("zzz") is None


def test_database_rows_take_precedence(monkeypatch):
    monkeypatch.setattr(repo, "list_questions", lambda version: [{"id": "db_only", "question_order": 1, "question_type": "text"}])
    catalog = loader.get_question_catalog()
    assert [q.id for q in catalog] == ["db_only"]


def test_file_fallback_when_database_unavailable(monkeypatch):
    def broken(version):
        raise SQLAlchemyError("connection refused")

    monkeypatch.setattr(repo, "list_questions", broken)
    catalog = loader.get_question_catalog()

    assert len(catalog) == 25
    timeline = catalog.get("marriage_timeline")
    assert timeline.conditional_on == "marriage"
    assert timeline.conditional_value == "Yes"
    assert catalog.get("name").profile_field_mapping == ("first_name", "last_name")
    assert loader.get_question_catalog() is catalog


def test_unreadable_file_is_load_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(repo, "list_questions", lambda version: [])
    monkeypatch.setattr(loader, "QUESTIONS_PATH", tmp_path / "missing.json")
    with pytest.raises(LoadFailure):
        loader.get_question_catalog()


def test_read_catalog_file_accepts_bare_list(tmp_path):
    path = tmp_path / "questions.json"
    path.write_text(json.dumps([{"id": "a", "order": 1, "type": "text"}]), encoding="utf-8")
    assert read_catalog_file(path) == [{"id": "a", "order": 1, "type": "text"}]
