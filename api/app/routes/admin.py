from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError

from ..config import SUGGEST_MIN_SCORE, SUGGEST_TOP_K
from ..deps import parse_user_id, require_admin
from ..errors import LoadFailure, StoreError
from ..schemas import ComparisonResponse, CompatibilityResponse, SuggestMatchesResponse
from ..services.compatibility import bidirectional_score, detailed_comparison, rank_candidates
from ..services.questionnaire_config import admin_view_sections

router = APIRouter(dependencies=[Depends(require_admin)])
scaffold_router = APIRouter()


def _answer_set(user_id: str) -> dict[str, Any]:
    from .. import main as m

    try:
        rows = m.answer_store.get_answers(user_id)
    except StoreError as exc:
        raise LoadFailure(f"could not read answers for {user_id}: {exc}") from exc
    return {str(r["question_id"]): r["answer"] for r in rows if r.get("answer") is not None}


@scaffold_router.get("/health")
def admin_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "admin"}


@router.get("/admin/compatibility", response_model=CompatibilityResponse)
def compatibility(user_a: str = Query(...), user_b: str = Query(...)) -> CompatibilityResponse:
    a, b = parse_user_id(user_a), parse_user_id(user_b)
    result = bidirectional_score(_answer_set(a), _answer_set(b))
    return CompatibilityResponse(user_a=a, user_b=b, **result.to_dict())


@router.get("/admin/compatibility/details", response_model=ComparisonResponse)
def compatibility_details(user_a: str = Query(...), user_b: str = Query(...)) -> ComparisonResponse:
    from .. import main as m

    a, b = parse_user_id(user_a), parse_user_id(user_b)
    rows = detailed_comparison(_answer_set(a), _answer_set(b), m.get_question_catalog())
    return ComparisonResponse(user_a=a, user_b=b, rows=rows)


@router.get("/admin/matches/suggest/{user_id}", response_model=SuggestMatchesResponse)
def suggest_matches(
    user_id: str,
    min_score: int = Query(default=SUGGEST_MIN_SCORE, ge=0, le=100),
    limit: int = Query(default=SUGGEST_TOP_K, ge=1, le=200),
) -> SuggestMatchesResponse:
    from .. import main as m

    uid = parse_user_id(user_id)
    try:
        candidates = m.list_answer_sets(exclude_user_id=uid)
    except SQLAlchemyError as exc:
        raise LoadFailure(f"could not read candidate answers: {exc}") from exc
    ranked = rank_candidates(_answer_set(uid), candidates, min_score=min_score, top_k=limit)
    return SuggestMatchesResponse(user_id=uid, suggestions=ranked)


@router.get("/admin/profiles/{user_id}/questionnaire")
def profile_questionnaire(user_id: str) -> dict[str, Any]:
    from .. import main as m

    uid = parse_user_id(user_id)
    catalog = m.get_question_catalog()
    return {"user_id": uid, "sections": admin_view_sections(catalog.load(), _answer_set(uid))}
