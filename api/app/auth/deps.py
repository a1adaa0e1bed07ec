"""
Caller identity for questionnaire routes.

Supports two auth modes:
1. Cookie-based session (primary for web): httpOnly cookie contains access token
2. Bearer token (for API clients): Authorization header with Bearer token

Accounts live with the identity provider; the token subject is the user id.
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Header, HTTPException

from app.auth.security import decode_access_token
from app.config import DEV_MODE

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "match_session"


class AuthError(Exception):
    """Raised when authentication fails with detailed reason."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _unauthorized(message: str, reason: str, trace_id: str) -> HTTPException:
    detail: dict[str, Any] = {"message": message, "trace_id": trace_id}
    if DEV_MODE:
        detail["reason"] = reason
    return HTTPException(status_code=401, detail=detail)


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def _user_from_token(token: str, trace_id: str, auth_source: str) -> dict[str, Any]:
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code != 401:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        logger.warning("[AUTH_FAILURE] trace_id=%s reason=%s source=%s", trace_id, reason, auth_source)
        raise _unauthorized("unauthorized", reason, trace_id)

    user_id = str(payload.get("sub") or "").strip()
    try:
        user_id = str(uuid.UUID(user_id))
    except ValueError:
        logger.warning("[AUTH_FAILURE] trace_id=%s reason=token_bad_subject source=%s", trace_id, auth_source)
        raise _unauthorized("unauthorized", "token_bad_subject", trace_id)

    logger.debug("[auth] token valid, sub=%s source=%s", user_id, auth_source)
    return {"id": user_id, "email": payload.get("email")}


def get_current_user(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    trace_id = str(uuid.uuid4())

    if session_token:
        return _user_from_token(session_token, trace_id, "cookie")

    if authorization:
        try:
            token = _extract_bearer(authorization)
        except AuthError as e:
            logger.warning("[AUTH_FAILURE] trace_id=%s reason=%s source=bearer", e.trace_id, e.reason)
            raise _unauthorized(e.detail, e.reason, e.trace_id)
        return _user_from_token(token, trace_id, "bearer")

    logger.warning("[AUTH_FAILURE] trace_id=%s reason=missing_token source=none", trace_id)
    raise _unauthorized("Authentication required", "missing_token", trace_id)
