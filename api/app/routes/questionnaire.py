from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..questionnaire_loader import Question
from ..schemas import (
    AnswersResponse,
    QuestionOut,
    SaveAnswerRequest,
    SaveAnswerResponse,
    VisibleQuestionsResponse,
)
from ..services.answer_session import AnswerSession
from ..services.questionnaire_config import (
    PREFERENCE_CATEGORIES,
    PROFILE_CATEGORIES,
    display_value,
    group_by_category,
    preference_questions,
    profile_questions,
    question_summary,
)

router = APIRouter()
scaffold_router = APIRouter()


def question_out(q: Question) -> QuestionOut:
    return QuestionOut(
        id=q.id,
        order=q.order,
        type=q.type,
        text=q.text,
        subtitle=q.subtitle,
        help_text=q.help_text,
        options=list(q.options),
        required=q.required,
        min=q.min,
        max=q.max,
        icon_name=q.icon_name,
        summary=question_summary(q),
    )


def _session_for(current_user: dict[str, Any]) -> AnswerSession:
    from .. import main as m

    return m.session_registry.get(str(current_user["id"]))


def _summary_sections(session: AnswerSession, questions: list[Question], categories) -> list[dict[str, Any]]:
    answers = session.answers
    return [
        {
            "name": category.name,
            "description": category.description,
            "questions": [
                {
                    "question_id": q.id,
                    "label": question_summary(q),
                    "display": display_value(q, answers.get(q.id), session.profile),
                }
                for q in members
            ],
        }
        for category, members in group_by_category(questions, categories)
    ]


@scaffold_router.get("/health")
def questionnaire_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "questionnaire"}


@router.get("/questionnaire/questions", response_model=VisibleQuestionsResponse)
def get_visible_questions(current_user: dict[str, Any] = Depends(get_current_user)) -> VisibleQuestionsResponse:
    session = _session_for(current_user)
    return VisibleQuestionsResponse(
        questions=[question_out(q) for q in session.visible_questions()],
        resume_index=session.resume_index(),
    )


@router.get("/questionnaire/answers", response_model=AnswersResponse)
def get_answers(current_user: dict[str, Any] = Depends(get_current_user)) -> AnswersResponse:
    session = _session_for(current_user)
    return AnswersResponse(
        answers=session.answers,
        resume_index=session.resume_index(),
        completion_percentage=session.completion_percentage(),
        missing_required=session.missing_required(),
    )


@router.post("/questionnaire/answers", response_model=SaveAnswerResponse)
def save_answer(payload: SaveAnswerRequest, current_user: dict[str, Any] = Depends(get_current_user)) -> SaveAnswerResponse:
    session = _session_for(current_user)
    persisted = session.save_answer(payload.question_id, payload.answer)
    return SaveAnswerResponse(
        status="ignored" if payload.answer is None else "saved",
        persisted=persisted,
        answers=session.answers,
        visible_question_ids=[q.id for q in session.visible_questions()],
    )


@router.delete("/questionnaire/answers/{question_id}", response_model=SaveAnswerResponse)
def clear_answer(question_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> SaveAnswerResponse:
    session = _session_for(current_user)
    persisted = session.clear_answer(question_id)
    return SaveAnswerResponse(
        status="cleared",
        persisted=persisted,
        answers=session.answers,
        visible_question_ids=[q.id for q in session.visible_questions()],
    )


@router.get("/questionnaire/summary")
def questionnaire_summary(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    session = _session_for(current_user)
    visible = session.visible_questions()
    return {
        "profile": _summary_sections(session, profile_questions(visible), PROFILE_CATEGORIES),
        "preferences": _summary_sections(session, preference_questions(visible), PREFERENCE_CATEGORIES),
        "completion_percentage": session.completion_percentage(),
    }
