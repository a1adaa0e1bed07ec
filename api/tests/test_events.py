import json

from app.services.events import ANSWER_SAVED, log_questionnaire_event


class FakeDB:
    def __init__(self):
        self.calls = []

    def execute(self, stmt, params):
        self.calls.append((str(stmt), params))


def test_log_questionnaire_event_inserts_expected_payload_shape():
    db = FakeDB()
    log_questionnaire_event(
        db=db,
        user_id="00000000-0000-0000-0000-000000000123",
        event_type=ANSWER_SAVED,
        question_id="religion",
        payload={"source": "questionnaire"},
    )
    assert len(db.calls) == 1
    sql, params = db.calls[0]
    assert "INSERT INTO questionnaire_event" in sql
    assert params["event_type"] == "answer_saved"
    assert params["question_id"] == "religion"
    assert json.loads(params["payload"]) == {"source": "questionnaire"}


def test_log_questionnaire_event_defaults():
    db = FakeDB()
    log_questionnaire_event(db, "00000000-0000-0000-0000-000000000123", "profile_fields_updated")
    _, params = db.calls[0]
    assert params["question_id"] == ""
    assert params["payload"] == "{}"
