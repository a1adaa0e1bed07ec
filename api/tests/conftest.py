import threading

import pytest

from app.errors import StoreError
from app.questionnaire_loader import Question, QuestionCatalog


class FakeStore:
    """In-memory answer store that records every call."""

    def __init__(self):
        self.answers: dict[str, dict] = {}
        self.profiles: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self._lock = threading.Lock()

    def _record(self, op, *args):
        with self._lock:
            self.calls.append((op, *args))
        if op in self.fail_on:
            raise StoreError(f"{op} unavailable")

    def writes(self):
        return [c for c in self.calls if c[0] not in {"get_answers", "get_profile"}]

    def get_answers(self, user_id):
        self._record("get_answers", user_id)
        return [{"question_id": k, "answer": v} for k, v in self.answers.get(user_id, {}).items()]

    def upsert_answer(self, user_id, question_id, answer):
        self._record("upsert_answer", user_id, question_id, answer)
        self.answers.setdefault(user_id, {})[question_id] = answer

    def delete_answer(self, user_id, question_id):
        self._record("delete_answer", user_id, question_id)
        self.answers.get(user_id, {}).pop(question_id, None)

    def get_profile(self, user_id):
        self._record("get_profile", user_id)
        return self.profiles.get(user_id)

    def update_profile_fields(self, user_id, field_map):
        self._record("update_profile_fields", user_id, dict(field_map))
        self.profiles.setdefault(user_id, {}).update(field_map)


def build_catalog() -> QuestionCatalog:
    return QuestionCatalog(
        (
            Question(id="name", order=1, type="text", text="What's your name?", profile_field_mapping=("first_name", "last_name")),
            Question(id="smoker", order=2, type="single_choice", text="Do you smoke?", options=("Yes", "No")),
            Question(
                id="cigarettes_per_day",
                order=3,
                type="single_choice",
                text="How many per day?",
                options=("Few", "Many"),
                conditional_on="smoker",
                conditional_value="Yes",
            ),
            Question(id="brand", order=4, type="text", text="Which brand?", conditional_on="cigarettes_per_day", conditional_value="Many"),
            Question(id="city", order=5, type="text", text="Where do you live?", required=False, profile_field_mapping=("city",)),
        )
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def catalog():
    return build_catalog()
