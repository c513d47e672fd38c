from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..auth.users import get_display_name
from .cache import normalize_username
from .models import ReceivedRecommendation, RecommendationRow

_recommendations: list[dict[str, Any]] = []
_next_id: int = 1


def add_recommendation(
    recommender_username: str,
    recommended_username: str,
    recommendation_text: str | None = None,
) -> int:
    """Store a new recommendation and return its id. Duplicates are allowed."""
    global _next_id
    rec_id = _next_id
    _next_id += 1
    _recommendations.append({
        "id": rec_id,
        "recommender_username": recommender_username,
        "recommended_username": recommended_username.strip(),
        "recommendation_text": recommendation_text or None,
        "created_at": datetime.now(timezone.utc),
        "visible": True,
    })
    return rec_id


def _for_recipient(username: str) -> list[dict[str, Any]]:
    key = normalize_username(username)
    matches = [
        r for r in _recommendations
        if normalize_username(r["recommended_username"]) == key
    ]
    # Newest first; insertion order breaks ties within the same timestamp
    return sorted(matches, key=lambda r: (r["created_at"], r["id"]), reverse=True)


def get_visible_rows(username: str) -> list[RecommendationRow]:
    """Return the visible recommendations for ``username``, newest first."""
    return [
        RecommendationRow(
            username=r["recommender_username"],
            name=get_display_name(r["recommender_username"]),
            created_at=r["created_at"],
            recommendation_text=r["recommendation_text"],
        )
        for r in _for_recipient(username)
        if r["visible"]
    ]


def get_received(username: str) -> list[ReceivedRecommendation]:
    """Return every recommendation ``username`` received, hidden ones included."""
    return [
        ReceivedRecommendation(
            id=r["id"],
            recommender_username=r["recommender_username"],
            recommender_name=get_display_name(r["recommender_username"]),
            recommendation_text=r["recommendation_text"],
            created_at=r["created_at"],
            visible=r["visible"],
        )
        for r in _for_recipient(username)
    ]


def get_recommendation(rec_id: int) -> dict[str, Any] | None:
    for r in _recommendations:
        if r["id"] == rec_id:
            return dict(r)
    return None


def set_visibility(rec_id: int, visible: bool) -> dict[str, Any] | None:
    """Flip a recommendation's visibility. Returns the updated record or ``None``."""
    for r in _recommendations:
        if r["id"] == rec_id:
            r["visible"] = visible
            return dict(r)
    return None


def clear_recommendations() -> None:
    global _next_id
    _recommendations.clear()
    _next_id = 1
