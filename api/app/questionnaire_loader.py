from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from .config import QUESTIONNAIRE_VERSION, QUESTIONS_PATH
from .errors import LoadFailure

logger = logging.getLogger(__name__)

FREE_TEXT_TYPES = {"text", "textarea", "date"}
CHOICE_TYPES = {"single_choice", "multiple_choice"}
NUMERIC_TYPES = {"scale", "number"}
VALID_QUESTION_TYPES = FREE_TEXT_TYPES | CHOICE_TYPES | NUMERIC_TYPES


@dataclass(frozen=True)
class Question:
    id: str
    order: int
    type: str
    text: str = ""
    options: tuple[Any, ...] = ()
    required: bool = True
    conditional_on: str | None = None
    conditional_value: Any = None
    profile_field_mapping: tuple[str, ...] = ()
    subtitle: str | None = None
    help_text: str | None = None
    icon_name: str | None = None
    min: float | None = None
    max: float | None = None
    version: int = 1

    @property
    def is_conditional(self) -> bool:
        return bool(self.conditional_on) and self.conditional_value is not None


def _parse_field_mapping(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        parts = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        parts = [str(p) for p in raw]
    else:
        return ()
    return tuple(p.strip() for p in parts if p.strip())


def _parse_options(raw: Any) -> tuple[tuple[Any, ...], float | None, float | None]:
    # Stored options are either a list of values or an object such as
    # {"min": 0, "max": 10} for scales.
    if isinstance(raw, list):
        return tuple(raw), None, None
    if isinstance(raw, dict):
        values = tuple(v for v in raw.values() if isinstance(v, str))
        lo = raw.get("min")
        hi = raw.get("max")
        return values, float(lo) if lo is not None else None, float(hi) if hi is not None else None
    return (), None, None


def question_from_row(row: dict[str, Any]) -> Question:
    """Build a Question from a database row or a catalog file entry.

    Accepts both the stored column names (question_order, question_type,
    question_text_en, is_required) and the short names used in the file.
    """
    options, lo, hi = _parse_options(row.get("options"))
    conditional_on = row.get("conditional_on") or None
    return Question(
        id=str(row.get("id") or "").strip(),
        order=int(row.get("question_order", row.get("order")) or 0),
        type=str(row.get("question_type") or row.get("type") or "text"),
        text=str(row.get("question_text_en") or row.get("text") or ""),
        options=options,
        required=bool(row.get("is_required", row.get("required", True))),
        conditional_on=str(conditional_on) if conditional_on else None,
        conditional_value=row.get("conditional_value"),
        profile_field_mapping=_parse_field_mapping(row.get("profile_field_mapping")),
        subtitle=row.get("subtitle_en") or row.get("subtitle"),
        help_text=row.get("help_text_en") or row.get("help_text"),
        icon_name=row.get("icon_name"),
        min=lo if lo is not None else row.get("min"),
        max=hi if hi is not None else row.get("max"),
        version=int(row.get("version") or 1),
    )


def validate_catalog(questions: list[Question]) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    by_id: dict[str, Question] = {}

    for idx, q in enumerate(questions):
        path = f"questions[{idx}]"
        if not q.id:
            errors.append({"code": "missing_question_id", "path": f"{path}.id", "message": "question id is required"})
            continue
        if q.id in by_id:
            errors.append({"code": "duplicate_question_id", "path": f"{path}.id", "message": f"duplicate question id '{q.id}'"})
            continue
        by_id[q.id] = q
        if q.type not in VALID_QUESTION_TYPES:
            errors.append({
                "code": "invalid_question_type",
                "path": f"{path}.type",
                "message": f"type '{q.type}' must be one of {sorted(VALID_QUESTION_TYPES)}",
            })

    for idx, q in enumerate(questions):
        if not q.conditional_on:
            continue
        path = f"questions[{idx}].conditional_on"
        parent = by_id.get(q.conditional_on)
        if parent is None:
            errors.append({
                "code": "unknown_condition_parent",
                "path": path,
                "message": f"'{q.id}' depends on unknown question '{q.conditional_on}'",
            })
        elif parent.order >= q.order:
            errors.append({
                "code": "forward_condition",
                "path": path,
                "message": f"'{q.id}' (order {q.order}) depends on '{parent.id}' (order {parent.order})",
            })
    return errors


@dataclass(frozen=True)
class QuestionCatalog:
    questions: tuple[Question, ...] = ()
    _by_id: dict[str, Question] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.questions, key=lambda q: q.order))
        object.__setattr__(self, "questions", ordered)
        object.__setattr__(self, "_by_id", {q.id: q for q in ordered})

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]]) -> "QuestionCatalog":
        questions = [question_from_row(r) for r in rows if isinstance(r, dict)]
        errors = validate_catalog(questions)
        if errors:
            raise LoadFailure("question catalog failed validation", errors=errors)
        return cls(tuple(questions))

    def load(self) -> tuple[Question, ...]:
        return self.questions

    def get(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def __len__(self) -> int:
        return len(self.questions)

    def __iter__(self):
        return iter(self.questions)


def read_catalog_file(path: Path) -> list[dict[str, Any]]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("questions") or []
    if not isinstance(data, list):
        raise LoadFailure(f"catalog file {path} must hold a list of questions")
    return [row for row in data if isinstance(row, dict)]


def _load_rows(version: int) -> list[dict[str, Any]]:
    from . import repo

    try:
        rows = repo.list_questions(version)
    except SQLAlchemyError as exc:
        logger.warning("[catalog] database unavailable (%s); falling back to %s", exc.__class__.__name__, QUESTIONS_PATH)
        rows = []
    if rows:
        return rows
    try:
        return read_catalog_file(QUESTIONS_PATH)
    except (OSError, json.JSONDecodeError) as exc:
        raise LoadFailure(f"question catalog unreadable: {exc}") from exc


@lru_cache(maxsize=4)
def get_question_catalog(version: int = QUESTIONNAIRE_VERSION) -> QuestionCatalog:
    catalog = QuestionCatalog.from_rows(_load_rows(version))
    logger.info("[catalog] loaded version=%s questions=%s", version, len(catalog))
    return catalog


def clear_catalog_cache() -> None:
    get_question_catalog.cache_clear()
