"""
Supabase sign-in for the portal.

The web client signs in through Supabase Auth (Google OAuth) and sends the
access token as a Bearer header. Tokens are checked against the project's
JWKS; the resulting principal must also be a row in `users`.
"""
import logging
from typing import Dict, Optional

import requests
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from techtool.api.deps import get_db
from techtool.core.config import settings
from techtool.models.user import User

logger = logging.getLogger(__name__)

# missing header -> 401 from get_current_user rather than HTTPBearer's 403
bearer = HTTPBearer(auto_error=False)

TOKEN_AUDIENCE = "authenticated"
TOKEN_ALGORITHMS = ["ES256", "RS256"]


class Principal:
    """Signed-in user as described by the identity provider."""
    def __init__(
        self,
        user_id: str,
        email: Optional[str],
        name: Optional[str] = None,
        image: Optional[str] = None,
    ):
        self.id = user_id
        self.email = email
        self.name = name or ""
        self.image = image


# keyed by JWKS url, fetched once per process
_jwks_by_url: Dict[str, dict] = {}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_supabase_jwks() -> dict:
    """Public signing keys of the Supabase project."""
    url = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"
    if url in _jwks_by_url:
        return _jwks_by_url[url]

    try:
        resp = requests.get(url, timeout=10)
        resp.raise_for_status()
        keys = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.exception("Failed to fetch JWKS from %s", url)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch JWKS from Supabase: {str(e)}",
        )
    _jwks_by_url[url] = keys
    return keys


def verify_token(token: str) -> dict:
    """
    Decoded claims of a Supabase access token, or 401.

    Newer projects sign with ES256 and older ones with RS256; python-jose
    picks the key by the token's `kid`.
    """
    keys = get_supabase_jwks()
    try:
        return jwt.decode(token, keys, algorithms=TOKEN_ALGORITHMS, audience=TOKEN_AUDIENCE)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError as e:
        raise _unauthorized(f"Invalid authentication credentials: {str(e)}")


def principal_from_claims(payload: dict) -> Principal:
    """
    Build the principal from JWT claims.

    Supabase JWT structure: {"sub": "...", "email": "...", "user_metadata": {...}};
    the Google provider fills user_metadata with full_name/avatar_url.
    """
    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Could not validate user")
    meta = payload.get("user_metadata") or {}
    return Principal(
        user_id=user_id,
        email=payload.get("email"),
        name=meta.get("full_name") or meta.get("name"),
        image=meta.get("avatar_url") or meta.get("picture"),
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")
    return principal_from_claims(verify_token(credentials.credentials))


def is_user_allowed(db: Session, email: Optional[str]) -> bool:
    """Only people present in the users table may use the portal."""
    if not email:
        return False
    stmt = select(User.id).where(func.lower(User.email) == email.strip().lower()).limit(1)
    return db.scalars(stmt).first() is not None


def require_allowed_user(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Principal:
    """Dependency for every portal route: a valid token and a matching users row."""
    if not is_user_allowed(db, current_user.email):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is not allowed to access this portal",
        )
    return current_user
