from __future__ import annotations

import logging
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable

from ..config import MATCH_THRESHOLD, PREFERENCE_WEIGHTS
from ..errors import PreferenceMappingError

logger = logging.getLogger(__name__)

# (preference value, A's own fact, B's fact, importance level) -> score in [0, 1]
Comparator = Callable[[Any, Any, Any, float], float]

ETHNICITY_PENALTY = 0.3
RELIGION_PENALTY = 0.4
EDUCATION_PENALTY = 0.2
EDUCATION_FLOOR = 0.5
AGE_DEFAULT = 0.8
APPEARANCE_DEFAULT = 0.7
HEIGHT_NO_PREFERENCE_SCORE = 0.8
HEIGHT_MISSING_FACT_SCORE = 0.5

NO_HEIGHT_PREFERENCE = {"no preference", "no_preference", "doesn't matter", "does not matter", "any", "not important"}

# Matched by substring, most specific first.
EDUCATION_LEVELS: tuple[tuple[str, int], ...] = (
    ("phd", 4),
    ("doctor", 4),
    ("master", 3),
    ("bachelor", 2),
    ("high school", 1),
)
BACHELOR_RANK = 2


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _unwrap(value: Any) -> Any:
    if isinstance(value, dict) and "value" in value:
        return value.get("value")
    return value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def importance_level(value: Any) -> float:
    value = _unwrap(value)
    if isinstance(value, bool):
        return 0.5
    if isinstance(value, (int, float)):
        return _clamp(float(value) / 10.0) if math.isfinite(value) else 0.5
    if isinstance(value, str):
        s = value.strip().lower()
        try:
            numeric = float(s)
        except ValueError:
            numeric = None
        if numeric is not None and math.isfinite(numeric):
            return _clamp(numeric / 10.0)
        if "not" in s or "unimportant" in s:
            return 0.0
        if "very" in s or "essential" in s:
            return 1.0
        if "somewhat" in s or "moderately" in s:
            return 0.5
    return 0.5


def importance_label(level: float) -> str:
    if level >= 0.8:
        return "Very Important"
    if level >= 0.5:
        return "Moderately Important"
    if level > 0:
        return "Somewhat Important"
    return "Not Important"


def _as_set(value: Any) -> set[str]:
    value = _unwrap(value)
    items = value if isinstance(value, (list, tuple, set)) else [value]
    return {str(v).strip().lower() for v in items if not _is_blank(v)}


def education_rank(value: Any) -> int:
    s = str(_unwrap(value) or "").strip().lower().replace("'", "").replace("’", "")
    for needle, rank in EDUCATION_LEVELS:
        if needle in s:
            return rank
    return 0


def _no_height_preference(preference: Any) -> bool:
    value = _unwrap(preference)
    if _is_blank(value):
        return True
    return isinstance(value, str) and value.strip().lower() in NO_HEIGHT_PREFERENCE


def compare_height(preference: Any, own: Any, other: Any, importance: float) -> float:
    if _no_height_preference(preference):
        return HEIGHT_NO_PREFERENCE_SCORE
    if importance == 0:
        return 1.0
    # TODO: score against the stated range once height_preference carries bounds.
    return 1.0 if not _is_blank(_unwrap(other)) else HEIGHT_MISSING_FACT_SCORE


def compare_ethnicity(preference: Any, own: Any, other: Any, importance: float) -> float:
    if importance == 0:
        return 1.0
    if _as_set(own) & _as_set(other):
        return 1.0
    return max(0.0, 1.0 - importance * ETHNICITY_PENALTY)


def compare_religion(preference: Any, own: Any, other: Any, importance: float) -> float:
    if importance == 0:
        return 1.0
    own_v, other_v = _unwrap(own), _unwrap(other)
    if not _is_blank(own_v) and str(own_v).strip() == str(other_v).strip():
        return 1.0
    return max(0.0, 1.0 - importance * RELIGION_PENALTY)


def compare_education(preference: Any, own: Any, other: Any, importance: float) -> float:
    if importance == 0:
        return 1.0
    if education_rank(other) >= BACHELOR_RANK:
        return 1.0
    return max(EDUCATION_FLOOR, 1.0 - importance * EDUCATION_PENALTY)


def compare_age(preference: Any, own: Any, other: Any, importance: float) -> float:
    return 1.0 if importance == 0 else AGE_DEFAULT


def compare_appearance(preference: Any, own: Any, other: Any, importance: float) -> float:
    return 1.0 if importance == 0 else APPEARANCE_DEFAULT


@dataclass(frozen=True)
class PreferenceMapping:
    preference_id: str
    fact_id: str
    weight: float
    comparator: Comparator
    importance: Callable[[Any], float] = importance_level


@dataclass(frozen=True)
class CompatibilityResult:
    a_to_b: int
    b_to_a: int
    average: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


# preference question -> (fact question, comparator, importance function)
MAPPING_VARIANTS: dict[str, tuple[str, Comparator, Callable[[Any], float]]] = {
    "education_importance": ("education_level", compare_education, importance_level),
    "height_preference": ("height", compare_height, importance_level),
    "ethnicity_importance": ("ethnicity", compare_ethnicity, importance_level),
    "religion_importance": ("religion", compare_religion, importance_level),
    "age_importance": ("date_of_birth", compare_age, importance_level),
    "appearance_importance": ("height", compare_appearance, importance_level),
}


def validate_preference_mappings(mappings: Iterable[PreferenceMapping]) -> tuple[PreferenceMapping, ...]:
    seen: set[str] = set()
    out: list[PreferenceMapping] = []
    for m in mappings:
        if not m.preference_id or not m.fact_id:
            raise PreferenceMappingError(f"mapping {m!r} needs both a preference and a fact question")
        if m.preference_id in seen:
            raise PreferenceMappingError(f"duplicate preference mapping '{m.preference_id}'")
        if isinstance(m.weight, bool) or not isinstance(m.weight, (int, float)) or not 0.0 <= m.weight <= 1.0:
            raise PreferenceMappingError(f"weight for '{m.preference_id}' must be within [0, 1], got {m.weight!r}")
        if not callable(m.comparator) or not callable(m.importance):
            raise PreferenceMappingError(f"mapping '{m.preference_id}' has no comparator")
        seen.add(m.preference_id)
        out.append(m)
    return tuple(out)


def build_preference_mappings(weights: dict[str, Any] | None = None) -> tuple[PreferenceMapping, ...]:
    weights = PREFERENCE_WEIGHTS if weights is None else weights
    mappings = []
    for preference_id, (fact_id, comparator, importance) in MAPPING_VARIANTS.items():
        if preference_id not in weights:
            continue
        weight = weights[preference_id]
        try:
            weight = float(weight)
        except (TypeError, ValueError) as exc:
            raise PreferenceMappingError(f"weight for '{preference_id}' is not numeric: {weight!r}") from exc
        mappings.append(PreferenceMapping(preference_id, fact_id, weight, comparator, importance))
    return validate_preference_mappings(mappings)


PREFERENCE_MAPPINGS = build_preference_mappings()


def _applicable_fields(answers_a: dict[str, Any], answers_b: dict[str, Any], mappings: Iterable[PreferenceMapping]):
    for m in mappings:
        preference = answers_a.get(m.preference_id)
        fact = answers_b.get(m.fact_id)
        if preference is None or fact is None:
            continue
        level = m.importance(preference)
        score = _clamp(float(m.comparator(preference, answers_a.get(m.fact_id), fact, level)))
        yield m, preference, fact, level, score


def directional_score(
    answers_a: dict[str, Any],
    answers_b: dict[str, Any],
    mappings: Iterable[PreferenceMapping] = PREFERENCE_MAPPINGS,
) -> int:
    """How well B's facts satisfy A's stated preferences, 0-100.

    Fields are skipped when A has no preference answer or B has no fact answer;
    with nothing left to weigh the score is 0.
    """
    weighted_sum = 0.0
    weight_total = 0.0
    for m, _, _, _, score in _applicable_fields(answers_a or {}, answers_b or {}, mappings):
        weighted_sum += score * m.weight
        weight_total += m.weight
    if weight_total <= 0:
        return 0
    return round_half_up(100.0 * weighted_sum / weight_total)


def bidirectional_score(
    answers_a: dict[str, Any],
    answers_b: dict[str, Any],
    mappings: Iterable[PreferenceMapping] = PREFERENCE_MAPPINGS,
) -> CompatibilityResult:
    mappings = tuple(mappings)
    a_to_b = directional_score(answers_a, answers_b, mappings)
    b_to_a = directional_score(answers_b, answers_a, mappings)
    return CompatibilityResult(a_to_b=a_to_b, b_to_a=b_to_a, average=round_half_up((a_to_b + b_to_a) / 2))


def detailed_comparison(
    answers_a: dict[str, Any],
    answers_b: dict[str, Any],
    catalog=None,
    mappings: Iterable[PreferenceMapping] = PREFERENCE_MAPPINGS,
    threshold: float = MATCH_THRESHOLD,
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for m, preference, fact, level, score in _applicable_fields(answers_a or {}, answers_b or {}, mappings):
        question = catalog.get(m.fact_id) if catalog is not None else None
        rows.append(
            {
                "question_id": m.fact_id,
                "preference_id": m.preference_id,
                "question_text": (question.text if question is not None and question.text else m.fact_id.replace("_", " ").title()),
                "preference_value": preference,
                "profile_value": fact,
                "score": round(score, 4),
                "is_match": score >= threshold,
                "importance_label": importance_label(level),
            }
        )
    return rows


def rank_candidates(
    answers: dict[str, Any],
    candidates: dict[str, dict[str, Any]],
    min_score: int = 0,
    top_k: int | None = None,
) -> list[dict[str, Any]]:
    ranked = []
    for user_id, other in candidates.items():
        result = bidirectional_score(answers, other)
        if result.average < min_score:
            continue
        ranked.append({"user_id": user_id, **result.to_dict()})
    ranked.sort(key=lambda r: (-r["average"], -min(r["a_to_b"], r["b_to_a"]), r["user_id"]))
    logger.debug("[compatibility] ranked %s of %s candidates", len(ranked), len(candidates))
    return ranked[:top_k] if top_k else ranked


def _score_pair(item: tuple[Any, dict[str, Any], dict[str, Any]]) -> tuple[Any, CompatibilityResult]:
    key, answers_a, answers_b = item
    return key, bidirectional_score(answers_a, answers_b)


def score_pairs(
    pairs: Iterable[tuple[Any, dict[str, Any], dict[str, Any]]],
    max_workers: int = 1,
) -> list[tuple[Any, CompatibilityResult]]:
    items = list(pairs)
    if max_workers <= 1 or len(items) < 2:
        return [_score_pair(item) for item in items]
    with ProcessPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_score_pair, items, chunksize=max(1, len(items) // (max_workers * 4))))
