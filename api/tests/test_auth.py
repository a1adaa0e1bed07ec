import pytest

pytest.importorskip("fastapi")
import jwt
from fastapi import HTTPException

from app.auth import deps as auth_deps
from app.auth import security


@pytest.fixture(autouse=True)
def _secret(monkeypatch):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")


def test_token_round_trip_through_cookie_and_bearer():
    token = security.create_access_token("11111111-1111-1111-1111-111111111111", email="a@example.com")

    from_cookie = auth_deps.get_current_user(session_token=token, authorization=None)
    from_bearer = auth_deps.get_current_user(session_token=None, authorization=f"Bearer {token}")

    assert from_cookie == {"id": "11111111-1111-1111-1111-111111111111", "email": "a@example.com"}
    assert from_bearer == from_cookie


def test_expired_token_rejected():
    token = security.create_access_token("11111111-1111-1111-1111-111111111111", ttl_minutes=-1)
    with pytest.raises(HTTPException) as excinfo:
        auth_deps.get_current_user(session_token=token, authorization=None)
    assert excinfo.value.status_code == 401


def test_subject_must_be_uuid():
    token = jwt.encode({"sub": "not-a-uuid"}, "test-secret", algorithm=security.ALGORITHM)
    with pytest.raises(HTTPException) as excinfo:
        auth_deps.get_current_user(session_token=None, authorization=f"Bearer {token}")
    assert excinfo.value.status_code == 401


def test_malformed_header_and_missing_token():
    for header in ("Token abc", "Bearer ", None):
        with pytest.raises(HTTPException) as excinfo:
            auth_deps.get_current_user(session_token=None, authorization=header)
        assert excinfo.value.status_code == 401


def test_missing_secret_is_server_error(monkeypatch):
    monkeypatch.setattr(security, "JWT_SECRET", "")
    with pytest.raises(HTTPException) as excinfo:
        security.create_access_token("11111111-1111-1111-1111-111111111111")
    assert excinfo.value.status_code == 500
