from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, status

from rapport.core.config import get_settings


def admin_secret_matches(expected: str, provided: str | None) -> bool:
    """An empty ``expected`` disables the check."""
    if not expected:
        return True
    return bool(provided) and secrets.compare_digest(provided.encode(), expected.encode())


def require_admin(x_admin_secret: str | None = Header(default=None)) -> None:
    if not admin_secret_matches(get_settings().admin_secret, x_admin_secret):
        detail = "Invalid admin secret" if x_admin_secret else "Missing admin secret"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def require_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return user_id
