from __future__ import annotations

import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .auth.dependencies import ensure_can_manage, require_admin, require_user
from .auth.users import authenticate
from .badge.renderer import render_error_badge
from .recommendations.cache import RenderCacheStore, get_or_render
from .recommendations.conditional import badge_cache_headers, is_not_modified
from .recommendations.models import (
    MAX_RECOMMENDATION_LENGTH,
    LoginRequest,
    ReceivedRecommendation,
    RecommendationRow,
    RecommendationsOut,
    RecommendRequest,
    RecommendResponse,
    VisibilityRequest,
)
from .recommendations.store import (
    add_recommendation,
    get_received,
    get_recommendation,
    get_visible_rows,
    set_visibility,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Endorsement Badges API", version="1.0.0")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ.get("SESSION_SECRET", "endorsements-secret-change-in-production"),
)
# Any origin is reflected back, credentials included.
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=".*",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

render_cache = RenderCacheStore()


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


_VALIDATION_MESSAGES = {
    "recommended_username": "Recommended username is required",
    "recommendation_text": f"Recommendation text must be {MAX_RECOMMENDATION_LENGTH} characters or less",
}


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Submitted values are never echoed back.
    field = next((err["loc"][-1] for err in exc.errors() if err.get("loc")), None)
    message = _VALIDATION_MESSAGES.get(field, "Invalid request")
    return JSONResponse({"error": message}, status_code=400)


async def fetch_rows(username: str) -> list[RecommendationRow]:
    return get_visible_rows(username)


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/u/{username}")
async def badge(username: str, request: Request) -> Response:
    logger.info("[%s] Badge request received", username)
    try:
        rendered = await get_or_render(render_cache, username, fetch_rows)
    except Exception:
        logger.exception("[%s] Error generating badge", username)
        return Response(
            content=render_error_badge("Failed to generate SVG"),
            status_code=500,
            headers={
                "Content-Type": "image/svg+xml; charset=utf-8",
                "Cache-Control": "no-store",
            },
        )

    headers = badge_cache_headers(username, rendered.last_modified)
    if is_not_modified(
        request.headers.get("if-none-match"),
        request.headers.get("if-modified-since"),
        username,
        rendered.last_modified,
    ):
        headers.pop("Content-Type")
        return Response(status_code=304, headers=headers)
    return Response(content=rendered.markup, headers=headers)


@app.get("/api/recommendations/{username}", response_model=RecommendationsOut)
async def recommendations_json(username: str):
    try:
        rows = await fetch_rows(username)
    except Exception:
        logger.exception("[%s] Database error", username)
        return JSONResponse({"error": "Database error"}, status_code=500)
    return RecommendationsOut(username=username, recommenders=rows)


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(body: LoginRequest, request: Request) -> dict:
    user = authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


# ── User endpoints ───────────────────────────────────────────────────────


@app.post("/api/recommend", response_model=RecommendResponse)
def recommend(
    body: RecommendRequest,
    user: dict = Depends(require_user),
) -> RecommendResponse:
    try:
        rec_id = add_recommendation(
            user["username"],
            body.recommended_username,
            body.recommendation_text,
        )
    except Exception:
        logger.exception("Failed to save recommendation for %s", body.recommended_username)
        raise HTTPException(status_code=500, detail="Failed to save recommendation")

    render_cache.invalidate(body.recommended_username)
    return RecommendResponse(
        success=True,
        message="Recommendation added successfully",
        id=rec_id,
    )


@app.get("/api/me/recommendations", response_model=list[ReceivedRecommendation])
def my_recommendations(user: dict = Depends(require_user)) -> list[ReceivedRecommendation]:
    return get_received(user["username"])


@app.post("/api/recommendations/{recommendation_id}/visibility")
def toggle_visibility(
    recommendation_id: int,
    body: VisibilityRequest,
    user: dict = Depends(require_user),
) -> dict:
    record = get_recommendation(recommendation_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Recommendation not found")

    recipient = record["recommended_username"]
    ensure_can_manage(user, recipient)

    set_visibility(recommendation_id, body.visible)
    render_cache.invalidate(recipient)
    return {"success": True, "id": recommendation_id, "visible": body.visible}


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/cache/stats")
def cache_stats(user: dict = Depends(require_admin)) -> dict:
    return render_cache.stats()
