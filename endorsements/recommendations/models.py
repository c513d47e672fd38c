from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

MAX_RECOMMENDATION_LENGTH = 500


class RecommendationRow(BaseModel):
    """One visible recommendation as shown on a badge, recommender joined in."""

    model_config = ConfigDict(frozen=True)

    username: str | None = None
    name: str | None = None
    created_at: datetime
    recommendation_text: str | None = None


class RecommendRequest(BaseModel):
    recommended_username: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)
    ]
    recommendation_text: str | None = Field(
        default=None,
        max_length=MAX_RECOMMENDATION_LENGTH,
        description="Optional endorsement text shown on the badge",
    )


class RecommendResponse(BaseModel):
    success: bool
    message: str
    id: int


class RecommendationsOut(BaseModel):
    username: str
    recommenders: list[RecommendationRow]


class ReceivedRecommendation(BaseModel):
    id: int
    recommender_username: str | None
    recommender_name: str | None
    recommendation_text: str | None
    created_at: datetime
    visible: bool


class VisibilityRequest(BaseModel):
    visible: bool


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
