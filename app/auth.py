# app/auth.py
"""Shared authentication dependencies."""

import secrets

from fastapi import Cookie, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.models import UserSession


def require_cron_secret(
    authorization: str | None = Header(default=None),
) -> None:
    """Validate the scheduler's bearer secret. Fails closed if CRON_SECRET is not set."""
    expected = get_settings().CRON_SECRET

    if not expected:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: cron authentication not configured",
        )

    if not authorization or not secrets.compare_digest(authorization, f"Bearer {expected}"):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
        )


def _bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def require_session_user(
    authorization: str | None = Header(default=None),
    session_token: str | None = Cookie(default=None),
    db: Session = Depends(get_db),
) -> str:
    """Resolve the caller's session to a user id, or 401."""
    token = session_token or _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    session = db.query(UserSession).filter(UserSession.token == token).first()
    if not session or session.is_expired():
        raise HTTPException(status_code=401, detail="Unauthorized")

    return session.user_id
