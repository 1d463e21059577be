# tests/test_auth.py
import pytest
from fastapi import HTTPException
from jose import JWTError

from techtool.core import auth
from techtool.core.auth import is_user_allowed, principal_from_claims, verify_token


def test_principal_from_google_claims():
    p = principal_from_claims({
        "sub": "auth-1",
        "email": "alice@example.com",
        "user_metadata": {"full_name": "Alice A", "avatar_url": "https://img/a.png"},
    })
    assert (p.id, p.email, p.name, p.image) == ("auth-1", "alice@example.com", "Alice A", "https://img/a.png")


def test_principal_falls_back_to_name_and_picture():
    p = principal_from_claims({"sub": "auth-1", "user_metadata": {"name": "Al", "picture": "pic"}})
    assert (p.name, p.image, p.email) == ("Al", "pic", None)


def test_claims_without_subject_are_rejected():
    with pytest.raises(HTTPException) as exc:
        principal_from_claims({"email": "x@example.com"})
    assert exc.value.status_code == 401


def test_invalid_token_is_401(monkeypatch):
    monkeypatch.setattr(auth, "get_supabase_jwks", lambda: {"keys": []})

    def bad_decode(*args, **kwargs):
        raise JWTError("Signature verification failed")

    monkeypatch.setattr(auth.jwt, "decode", bad_decode)
    with pytest.raises(HTTPException) as exc:
        verify_token("not-a-jwt")
    assert exc.value.status_code == 401
    assert "Signature verification failed" in exc.value.detail


def test_allow_list_matches_email_case_insensitively(db, alice):
    assert is_user_allowed(db, "alice@example.com")
    assert is_user_allowed(db, " ALICE@example.com ")
    assert not is_user_allowed(db, "eve@example.com")
    assert not is_user_allowed(db, None)
