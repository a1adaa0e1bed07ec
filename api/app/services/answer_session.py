"""Answer session for one user's questionnaire.

The session owns the in-memory answer set, applies every write through the
dependency resolver and mirrors the result to an answer store. Memory is
updated first; persistence either runs inline or on an injected executor, and
store failures are reported through ``on_persistence_failure`` without rolling
memory back.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Executor, Future, wait
from functools import partial
from typing import Any, Callable, Protocol

from ..config import SESSION_CACHE_SIZE
from ..errors import LoadFailure, PersistenceFailure, SessionStateError, StoreError
from ..questionnaire_loader import Question, QuestionCatalog, get_question_catalog
from . import questionnaire_config
from .dependency_resolver import cascade_invalidation, is_answered, is_visible, missing_required, visible_questions
from .state_machine import FAILED, READY, UNINITIALIZED, transition_session_status

logger = logging.getLogger(__name__)

NAME_QUESTION_ID = "name"


class AnswerStore(Protocol):
    def get_answers(self, user_id: str) -> list[dict[str, Any]]: ...

    def upsert_answer(self, user_id: str, question_id: str, answer: Any) -> None: ...

    def delete_answer(self, user_id: str, question_id: str) -> None: ...

    def get_profile(self, user_id: str) -> dict[str, Any] | None: ...

    def update_profile_fields(self, user_id: str, field_map: dict[str, Any]) -> None: ...


def prefill_name(answers: dict[str, Any], profile: dict[str, Any] | None) -> dict[str, Any]:
    if is_answered(answers.get(NAME_QUESTION_ID)) or not profile:
        return answers
    first = str(profile.get("first_name") or "")
    last = str(profile.get("last_name") or "")
    if not first and not last:
        return answers
    return {**answers, NAME_QUESTION_ID: [first, last]}


def drop_unreachable(catalog: QuestionCatalog, answers: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Remove answers whose condition no longer holds.

    Walks the catalog in order, so a parent dropped here hides its own
    dependents before they are checked.
    """
    kept = dict(answers)
    dropped: list[str] = []
    for q in catalog:
        if q.id in kept and not is_visible(q, kept):
            del kept[q.id]
            dropped.append(q.id)
    return kept, dropped


def profile_fields_for(question: Question | None, answer: Any) -> dict[str, Any]:
    if question is None or not question.profile_field_mapping:
        return {}
    fields = question.profile_field_mapping
    if len(fields) == 1:
        return {fields[0]: answer}
    # Compound answers such as ["first", "last"] are split by position.
    if not isinstance(answer, (list, tuple)):
        return {}
    return {field: answer[idx] for idx, field in enumerate(fields) if idx < len(answer)}


class AnswerSession:
    def __init__(
        self,
        user_id: str,
        store: AnswerStore,
        catalog: QuestionCatalog | None = None,
        *,
        catalog_loader: Callable[[], QuestionCatalog] = get_question_catalog,
        executor: Executor | None = None,
        on_persistence_failure: Callable[[PersistenceFailure], None] | None = None,
    ) -> None:
        self.user_id = user_id
        self.store = store
        self.status = UNINITIALIZED
        self.profile: dict[str, Any] | None = None
        self._catalog = catalog
        self._catalog_loader = catalog_loader
        self._executor = executor
        self._on_failure = on_persistence_failure
        self._answers: dict[str, Any] = {}
        self._lock = threading.RLock()
        self._load_lock = threading.Lock()
        self._tails: dict[str, Future] = {}
        self._pending: set[Future] = set()
        self._unflushed_failures = 0

    @property
    def catalog(self) -> QuestionCatalog:
        return self._catalog if self._catalog is not None else QuestionCatalog()

    @property
    def answers(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._answers) if self.status == READY else {}

    def load(self) -> tuple[QuestionCatalog, dict[str, Any], dict[str, Any] | None]:
        with self._lock:
            if self.status != UNINITIALIZED:
                raise SessionStateError(f"session for {self.user_id} already {self.status}")
            self.status = transition_session_status(self.status, "load")

        try:
            catalog = self._catalog if self._catalog is not None else self._catalog_loader()
            rows = self.store.get_answers(self.user_id)
            profile = self.store.get_profile(self.user_id)
        except (StoreError, LoadFailure) as exc:
            with self._lock:
                self.status = transition_session_status(self.status, "error")
            logger.error("[questionnaire] load failed user_id=%s: %s", self.user_id, exc)
            errors = exc.errors if isinstance(exc, LoadFailure) else None
            raise LoadFailure(f"could not load questionnaire for {self.user_id}: {exc}", errors=errors) from exc

        answers: dict[str, Any] = {}
        for row in rows or []:
            qid = str(row.get("question_id") or "")
            if qid and row.get("answer") is not None:
                answers[qid] = row["answer"]
        answers, stale = drop_unreachable(catalog, answers)
        answers = prefill_name(answers, profile)

        with self._lock:
            self._catalog = catalog
            self._answers = answers
            self.profile = dict(profile) if profile else None
            self.status = transition_session_status(self.status, "loaded")
            for qid in stale:
                self._dispatch("delete_answer", qid, partial(self.store.delete_answer, self.user_id, qid))
        if stale:
            logger.warning("[questionnaire] dropped stale answers on load user_id=%s question_ids=%s", self.user_id, stale)
        logger.info("[questionnaire] loaded user_id=%s answers=%s questions=%s", self.user_id, len(answers), len(catalog))
        return catalog, dict(answers), self.profile

    def ensure_loaded(self) -> "AnswerSession":
        with self._load_lock:
            if self.status == UNINITIALIZED:
                self.load()
        if self.status == FAILED:
            raise LoadFailure(f"questionnaire for {self.user_id} failed to load")
        return self

    def _require_ready(self) -> None:
        if self.status != READY:
            raise SessionStateError(f"session for {self.user_id} is {self.status}, not ready")

    def save_answer(self, question_id: str, answer: Any) -> bool:
        if answer is None:
            logger.warning("[questionnaire] skipping save of empty answer user_id=%s question_id=%s", self.user_id, question_id)
            return False

        with self._lock:
            self._require_ready()
            question = self.catalog.get(question_id)
            if question is not None and not is_visible(question, self._answers):
                logger.warning(
                    "[questionnaire] skipping save for hidden question user_id=%s question_id=%s", self.user_id, question_id
                )
                return False
            self._answers[question_id] = answer
            invalidated = cascade_invalidation(self.catalog, question_id, answer)
            for qid in invalidated:
                self._answers.pop(qid, None)

            field_map = profile_fields_for(question, answer)
            if field_map and self.profile is not None:
                self.profile = {**self.profile, **field_map}

            results = [self._dispatch("upsert_answer", question_id, partial(self.store.upsert_answer, self.user_id, question_id, answer))]
            for qid in invalidated:
                results.append(self._dispatch("delete_answer", qid, partial(self.store.delete_answer, self.user_id, qid)))
            if field_map:
                results.append(self._dispatch("update_profile_fields", "profile", partial(self.store.update_profile_fields, self.user_id, field_map)))

        if invalidated:
            logger.info("[questionnaire] cascade user_id=%s question_id=%s invalidated=%s", self.user_id, question_id, invalidated)
        return all(results)

    def clear_answer(self, question_id: str) -> bool:
        with self._lock:
            self._require_ready()
            self._answers.pop(question_id, None)
            invalidated = cascade_invalidation(self.catalog, question_id, None)
            for qid in invalidated:
                self._answers.pop(qid, None)
            results = [
                self._dispatch("delete_answer", qid, partial(self.store.delete_answer, self.user_id, qid))
                for qid in [question_id, *invalidated]
            ]
        return all(results)

    def _dispatch(self, operation: str, key: str, fn: Callable[[], Any]) -> bool:
        if self._executor is None:
            return self._run(operation, key, fn)

        previous = self._tails.get(key)

        def task() -> bool:
            if previous is not None:
                wait([previous])
            return self._run(operation, key, fn)

        future = self._executor.submit(task)
        self._tails[key] = future
        self._pending.add(future)
        future.add_done_callback(partial(self._forget, key))
        return True

    def _forget(self, key: str, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
            if self._tails.get(key) is future:
                del self._tails[key]

    def _run(self, operation: str, key: str, fn: Callable[[], Any]) -> bool:
        try:
            fn()
            return True
        except Exception as exc:
            failure = PersistenceFailure(operation, key, exc)
            with self._lock:
                self._unflushed_failures += 1
            if isinstance(exc, StoreError):
                logger.error("[questionnaire] %s failed user_id=%s key=%s: %s", operation, self.user_id, key, exc)
            else:
                logger.exception("[questionnaire] %s crashed user_id=%s key=%s", operation, self.user_id, key)
            if self._on_failure is not None:
                self._on_failure(failure)
            return False

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for queued persistence; True when nothing failed since the last flush."""
        with self._lock:
            pending = list(self._pending)
        not_done = wait(pending, timeout=timeout).not_done if pending else set()
        with self._lock:
            failed, self._unflushed_failures = self._unflushed_failures, 0
        return not not_done and failed == 0

    def visible_questions(self) -> list[Question]:
        with self._lock:
            return visible_questions(self.catalog, self._answers)

    def missing_required(self) -> list[str]:
        with self._lock:
            return missing_required(self.catalog, self._answers)

    def resume_index(self) -> int:
        visible = self.visible_questions()
        if not visible:
            return 0
        with self._lock:
            for idx, q in enumerate(visible):
                if not is_answered(self._answers.get(q.id)):
                    return idx
        return len(visible) - 1

    def completion_percentage(self) -> int:
        with self._lock:
            return questionnaire_config.completion_percentage(self._answers, visible_questions(self.catalog, self._answers))

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._answers)


class SessionRegistry:
    """One live AnswerSession per user, bounded by least-recent use."""

    def __init__(
        self,
        store: AnswerStore,
        *,
        executor: Executor | None = None,
        max_sessions: int = SESSION_CACHE_SIZE,
        catalog_loader: Callable[[], QuestionCatalog] = get_question_catalog,
        on_persistence_failure: Callable[[PersistenceFailure], None] | None = None,
    ) -> None:
        self.store = store
        self.executor = executor
        self.max_sessions = max(1, int(max_sessions))
        self.catalog_loader = catalog_loader
        self.on_persistence_failure = on_persistence_failure
        self._sessions: OrderedDict[str, AnswerSession] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, user_id: str) -> AnswerSession:
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None or session.status == FAILED:
                session = AnswerSession(
                    user_id,
                    self.store,
                    catalog_loader=self.catalog_loader,
                    executor=self.executor,
                    on_persistence_failure=self.on_persistence_failure,
                )
                self._sessions[user_id] = session
            self._sessions.move_to_end(user_id)
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)
        return session.ensure_loaded()

    def evict(self, user_id: str) -> None:
        with self._lock:
            self._sessions.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
