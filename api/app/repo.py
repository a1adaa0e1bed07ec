import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import QUESTIONNAIRE_VERSION
from app.database import SessionLocal
from app.errors import StoreError
from app.services.events import ANSWER_DELETED, ANSWER_SAVED, PROFILE_FIELDS_UPDATED, log_questionnaire_event

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "city",
    "instagram_contact",
    "dating_preference",
    "education_level",
    "height",
    "religion",
}


def list_questions(version: int = QUESTIONNAIRE_VERSION) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT id, version, question_order, question_type, question_text_en, subtitle_en, help_text_en,
                       options, is_required, conditional_on, conditional_value, profile_field_mapping, icon_name
                FROM questionnaire_question
                WHERE version = :version
                ORDER BY question_order
                """
            ),
            {"version": version},
        ).mappings().all()
    return [dict(r) for r in rows]


def get_answers(user_id: str) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT question_id, answer
                FROM profile_answer
                WHERE user_id = CAST(:user_id AS uuid)
                """
            ),
            {"user_id": user_id},
        ).mappings().all()
    return [{"question_id": str(r["question_id"]), "answer": r["answer"]} for r in rows]


def upsert_answer(user_id: str, question_id: str, answer: Any, version: int = QUESTIONNAIRE_VERSION) -> None:
    with SessionLocal() as db:
        db.execute(
            text(
                """
                INSERT INTO profile_answer (user_id, question_id, answer, questionnaire_version)
                VALUES (CAST(:user_id AS uuid), :question_id, CAST(:answer AS jsonb), :version)
                ON CONFLICT (user_id, question_id)
                DO UPDATE SET answer = EXCLUDED.answer,
                              questionnaire_version = EXCLUDED.questionnaire_version,
                              updated_at = NOW()
                """
            ),
            {"user_id": user_id, "question_id": question_id, "answer": json.dumps(answer), "version": version},
        )
        log_questionnaire_event(db, user_id, ANSWER_SAVED, question_id=question_id)
        db.commit()


def delete_answer(user_id: str, question_id: str) -> int:
    with SessionLocal() as db:
        res = db.execute(
            text("DELETE FROM profile_answer WHERE user_id = CAST(:user_id AS uuid) AND question_id = :question_id"),
            {"user_id": user_id, "question_id": question_id},
        )
        deleted = int(res.rowcount or 0)
        if deleted:
            log_questionnaire_event(db, user_id, ANSWER_DELETED, question_id=question_id)
        db.commit()
    return deleted


def get_profile(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text("SELECT * FROM profile WHERE user_id = CAST(:user_id AS uuid)"),
            {"user_id": user_id},
        ).mappings().first()
    return dict(row) if row else None


def update_profile_fields(user_id: str, field_map: dict[str, Any]) -> dict[str, Any]:
    allowed = {k: v for k, v in field_map.items() if k in PROFILE_FIELDS}
    dropped = sorted(set(field_map) - set(allowed))
    if dropped:
        logger.warning("[profile] ignoring unknown profile fields user_id=%s fields=%s", user_id, dropped)
    if not allowed:
        return {}
    assignments = ", ".join(f"{col} = :{col}" for col in sorted(allowed))
    params = {**{k: None if v is None else str(v) for k, v in allowed.items()}, "user_id": user_id}
    with SessionLocal() as db:
        db.execute(
            text(f"UPDATE profile SET {assignments}, updated_at = NOW() WHERE user_id = CAST(:user_id AS uuid)"),
            params,
        )
        log_questionnaire_event(db, user_id, PROFILE_FIELDS_UPDATED, payload={"fields": sorted(allowed)})
        db.commit()
    return allowed


def list_answer_sets(exclude_user_id: str | None = None, limit: int = 500) -> dict[str, dict[str, Any]]:
    """Answer sets of approved profiles, keyed by user id, for match curation."""
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT pa.user_id, pa.question_id, pa.answer
                FROM profile_answer pa
                JOIN (
                    SELECT user_id
                    FROM profile
                    WHERE status = 'approved'
                      AND (:exclude IS NULL OR user_id <> CAST(:exclude AS uuid))
                    ORDER BY updated_at DESC
                    LIMIT :limit
                ) p ON p.user_id = pa.user_id
                """
            ),
            {"exclude": exclude_user_id, "limit": limit},
        ).mappings().all()
    out: dict[str, dict[str, Any]] = {}
    for r in rows:
        out.setdefault(str(r["user_id"]), {})[str(r["question_id"])] = r["answer"]
    return out


class SqlAnswerStore:
    """Answer store backed by the profile_answer and profile tables."""

    def get_answers(self, user_id: str) -> list[dict[str, Any]]:
        try:
            return get_answers(user_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"get_answers failed: {exc}") from exc

    def upsert_answer(self, user_id: str, question_id: str, answer: Any) -> None:
        try:
            upsert_answer(user_id, question_id, answer)
        except SQLAlchemyError as exc:
            raise StoreError(f"upsert_answer failed: {exc}") from exc

    def delete_answer(self, user_id: str, question_id: str) -> None:
        try:
            delete_answer(user_id, question_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"delete_answer failed: {exc}") from exc

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        try:
            return get_profile(user_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"get_profile failed: {exc}") from exc

    def update_profile_fields(self, user_id: str, field_map: dict[str, Any]) -> None:
        try:
            update_profile_fields(user_id, field_map)
        except SQLAlchemyError as exc:
            raise StoreError(f"update_profile_fields failed: {exc}") from exc
