from __future__ import annotations

from typing import Any

import bcrypt

_users: dict[str, dict[str, Any]] = {}


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def _seed_users() -> None:
    """Pre-seed demo users on import."""
    _users["user"] = {
        "password_hash": _hash_password("user123"),
        "name": "Demo User",
        "role": "user",
    }
    _users["octocat"] = {
        "password_hash": _hash_password("octocat123"),
        "name": "The Octocat",
        "role": "user",
    }
    _users["admin"] = {
        "password_hash": _hash_password("admin123"),
        "name": "Administrator",
        "role": "admin",
    }


def _find(username: str) -> tuple[str, dict[str, Any]] | None:
    folded = username.casefold()
    for key, record in _users.items():
        if key.casefold() == folded:
            return key, record
    return None


def authenticate(username: str, password: str) -> dict[str, Any] | None:
    """Verify credentials. Returns ``{username, name, role}`` or ``None``."""
    found = _find(username)
    if found and _verify_password(password, found[1]["password_hash"]):
        key, record = found
        return {"username": key, "name": record["name"], "role": record["role"]}
    return None


def get_display_name(username: str | None) -> str | None:
    """Return the current display name of a registered user, if any."""
    if not username:
        return None
    found = _find(username)
    return found[1]["name"] if found else None


_seed_users()
