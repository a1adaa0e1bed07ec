"""Error taxonomy for the questionnaire and compatibility services.

Load-time errors halt a session; save-time errors are local and non-fatal;
scoring only raises for a malformed preference mapping table.
"""

from __future__ import annotations


class QuestionnaireError(Exception):
    """Base class for questionnaire errors."""


class LoadFailure(QuestionnaireError):
    """Catalog or persisted answers could not be read."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class StoreError(QuestionnaireError):
    """A single answer-store call failed."""


class PersistenceFailure(QuestionnaireError):
    """A save/delete/profile write failed after the in-memory state was updated."""

    def __init__(self, operation: str, key: str, cause: Exception | None = None):
        super().__init__(f"{operation} failed for {key}: {cause}")
        self.operation = operation
        self.key = key
        self.cause = cause


class SessionStateError(QuestionnaireError):
    """Operation attempted while the session is not ready."""


class PreferenceMappingError(QuestionnaireError):
    """The static preference mapping table is malformed."""
