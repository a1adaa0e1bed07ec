import json
import uuid
from typing import Any

from sqlalchemy import text

ANSWER_SAVED = "answer_saved"
ANSWER_DELETED = "answer_deleted"
PROFILE_FIELDS_UPDATED = "profile_fields_updated"


def log_questionnaire_event(
    db,
    user_id: str,
    event_type: str,
    question_id: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    payload = payload or {}
    db.execute(
        text(
            """
            INSERT INTO questionnaire_event (id, user_id, question_id, event_type, payload)
            VALUES (:id, CAST(:user_id AS uuid), NULLIF(:question_id, ''), :event_type, CAST(:payload AS jsonb))
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "question_id": question_id or "",
            "event_type": event_type,
            "payload": json.dumps(payload),
        },
    )
