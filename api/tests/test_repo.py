import pytest
from sqlalchemy.exc import OperationalError

from app import repo
from app.errors import StoreError


class _Result:
    rowcount = 1

    def mappings(self):
        return self

    def first(self):
        return None

    def all(self):
        return []


class _RecordingSession:
    def __init__(self, calls):
        self.calls = calls

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, stmt, params=None):
        self.calls.append((str(stmt), params or {}))
        return _Result()

    def commit(self):
        self.calls.append(("COMMIT", {}))


@pytest.fixture
def sql_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(repo, "SessionLocal", lambda: _RecordingSession(calls))
    return calls


def test_upsert_answer_writes_json_and_logs_event(sql_calls):
    repo.upsert_answer("00000000-0000-0000-0000-000000000001", "interests", ["Travel", "Music"])

    sql, params = sql_calls[0]
    assert "ON CONFLICT (user_id, question_id)" in sql
    assert params["answer"] == '["Travel", "Music"]'
    assert "INSERT INTO questionnaire_event" in sql_calls[1][0]
    assert sql_calls[1][1]["event_type"] == "answer_saved"
    assert sql_calls[-1][0] == "COMMIT"


def test_update_profile_fields_drops_unknown_columns(sql_calls):
    applied = repo.update_profile_fields(
        "00000000-0000-0000-0000-000000000001",
        {"city": "Lisbon", "height": 180, "password_hash": "x"},
    )

    assert applied == {"city": "Lisbon", "height": 180}
    sql, params = sql_calls[0]
    assert "password_hash" not in sql
    assert "city = :city" in sql and "height = :height" in sql
    assert params["height"] == "180"


def test_update_profile_fields_with_nothing_allowed_is_a_noop(sql_calls):
    assert repo.update_profile_fields("00000000-0000-0000-0000-000000000001", {"bogus": 1}) == {}
    assert sql_calls == []


def test_sql_store_wraps_database_errors(monkeypatch):
    def broken_session():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(repo, "SessionLocal", broken_session)
    store = repo.SqlAnswerStore()

    with pytest.raises(StoreError):
        store.get_answers("00000000-0000-0000-0000-000000000001")
    with pytest.raises(StoreError):
        store.upsert_answer("00000000-0000-0000-0000-000000000001", "city", "Rome")
    with pytest.raises(StoreError):
        store.update_profile_fields("00000000-0000-0000-0000-000000000001", {"city": "Rome"})
