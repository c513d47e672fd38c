from __future__ import annotations

from fastapi import HTTPException, Request


def get_current_user(request: Request) -> dict | None:
    """Return the session user, or ``None`` for anonymous visitors."""
    return request.session.get("user")


def is_admin(user: dict) -> bool:
    return user.get("role") == "admin"


def require_user(request: Request) -> dict:
    """Dependency for routes that need a signed-in recommender."""
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(request: Request) -> dict:
    user = require_user(request)
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def ensure_can_manage(user: dict, recipient: str) -> None:
    """Only the recipient of a recommendation (or an admin) may change it."""
    if user["username"].casefold() != recipient.casefold() and not is_admin(user):
        raise HTTPException(status_code=403, detail="Not allowed to change this recommendation")
