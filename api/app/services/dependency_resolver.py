from __future__ import annotations

from collections import deque
from typing import Any, Iterable

from ..questionnaire_loader import Question


def normalize_answer(value: Any) -> Any:
    """Scalar form used for condition checks.

    Wrapped answers ({"value": x}) are unwrapped, non-string scalars compare by
    their string form, and lists are returned untouched so they never equal a
    scalar condition.
    """
    if isinstance(value, dict) and "value" in value:
        value = value.get("value")
    if value is None or isinstance(value, (str, list, tuple, dict)):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def condition_matches(question: Question, answer: Any) -> bool:
    if answer is None:
        return False
    return normalize_answer(answer) == normalize_answer(question.conditional_value)


def is_visible(question: Question, answers: dict[str, Any]) -> bool:
    if not question.is_conditional:
        return True
    return condition_matches(question, answers.get(question.conditional_on))


def visible_questions(catalog: Iterable[Question], answers: dict[str, Any]) -> list[Question]:
    ordered = sorted(catalog, key=lambda q: q.order)
    return [q for q in ordered if is_visible(q, answers)]


def dependents_to_invalidate(catalog: Iterable[Question], changed_question_id: str, new_answer: Any) -> list[str]:
    out: list[str] = []
    for q in catalog:
        if q.conditional_on != changed_question_id or not q.is_conditional:
            continue
        if not condition_matches(q, new_answer):
            out.append(q.id)
    return out


def cascade_invalidation(catalog: Iterable[Question], changed_question_id: str, new_answer: Any) -> list[str]:
    """Transitive closure of dependents_to_invalidate.

    A question removed by the cascade has no answer any more, so each of its
    own dependents is re-checked against None.
    """
    questions = list(catalog)
    seen: set[str] = {changed_question_id}
    out: list[str] = []
    queue: deque[tuple[str, Any]] = deque([(changed_question_id, new_answer)])
    while queue:
        qid, value = queue.popleft()
        for dep in dependents_to_invalidate(questions, qid, value):
            if dep in seen:
                continue
            seen.add(dep)
            out.append(dep)
            queue.append((dep, None))
    return out


def is_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


def missing_required(catalog: Iterable[Question], answers: dict[str, Any]) -> list[str]:
    return [q.id for q in visible_questions(catalog, answers) if q.required and not is_answered(answers.get(q.id))]
