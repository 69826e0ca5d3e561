"""
Friend Recommendation API Routes

Exposes the recommendation engine via REST API.
Main endpoint: POST /friend-recommendations
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from db import SessionLocal, get_db
from .cache import build_cache
from .config import settings
from .logic.constants import ALGORITHM_VERSION
from .logic.contracts import RecommendationRequest, RecommendationResponse
from .logic.engine import RecommendationEngine
from .logic.errors import (
    ConfigurationError,
    DataAccessError,
    ProfileNotFoundError,
    RecommendationTimeoutError,
)
from .store import SqlProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/friend-recommendations", tags=["friend-recommendations"])


_engine: Optional[RecommendationEngine] = None


def get_engine() -> RecommendationEngine:
    """Process-wide engine backed by the SQL Profile Store and the configured cache."""
    global _engine
    if _engine is None:
        _engine = RecommendationEngine(
            SqlProfileStore(SessionLocal),
            cache=build_cache(settings),
            parameters={
                "batch_size": settings.batch_size,
                "request_timeout_seconds": settings.request_timeout_seconds,
            },
        )
        logger.info(f"Recommendation engine ready (cache backend: {settings.cache_backend})")
    return _engine


# =============================================================================
# REQUEST/RESPONSE SCHEMAS
# =============================================================================

class WarmupRequest(BaseModel):
    user_ids: List[str] = Field(..., description="Users whose profiles should be preloaded")


class InvalidationResponse(BaseModel):
    user_id: str
    invalidated: int


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", response_model=RecommendationResponse, summary="Get friend recommendations")
@router.post("/", response_model=RecommendationResponse, include_in_schema=False)
async def get_recommendations(
    request: RecommendationRequest,
    engine: RecommendationEngine = Depends(get_engine),
):
    """
    Generate ranked friend recommendations for a user.

    **Request Body:**
    - `user_id`: requesting user
    - `limit`: max recommendations (1-100, default 20)
    - `exclude_users`, `include_types`, `exclude_types`: candidate filters
    - `min_score`: drop candidates scoring below this (0-100)
    - `max_age_days`: only candidates active within this many days
    - `diversity_factor`: 0 disables the diversity filter
    - `privacy_level`: public / university / friends / private
    """
    try:
        return await engine.generate_recommendations(request)
    except ProfileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DataAccessError as e:
        logger.error(f"❌ Recommendation failed for {request.user_id}: {e}")
        raise HTTPException(status_code=503, detail="Profile store unavailable")
    except RecommendationTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e))


@router.get("/config", summary="Current scoring configuration")
def get_config(engine: RecommendationEngine = Depends(get_engine)):
    return engine.get_configuration()


@router.put("/config/weights", summary="Update core factor weights")
def update_weights(
    weights: Dict[str, float] = Body(..., examples=[{"university": 0.35, "mutual_connections": 0.25}]),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        return {"weights": engine.update_weights(weights)}
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.put("/config/parameters", summary="Update bonus weights and engine parameters")
def update_parameters(
    parameters: Dict[str, Any] = Body(..., examples=[{"recency": 0.05, "batch_size": 25}]),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        return engine.update_parameters(parameters)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/cache/users/{user_id}", response_model=InvalidationResponse, summary="Invalidate a user's cache")
async def invalidate_user_cache(user_id: str, engine: RecommendationEngine = Depends(get_engine)):
    invalidated = await engine.invalidate_user(user_id)
    return InvalidationResponse(user_id=user_id, invalidated=invalidated)


@router.post("/cache/warmup", summary="Preload profiles into the cache")
async def warmup_cache(request: WarmupRequest, engine: RecommendationEngine = Depends(get_engine)):
    try:
        warmed = await engine.warmup(request.user_ids)
    except DataAccessError as e:
        logger.error(f"❌ Cache warmup failed: {e}")
        raise HTTPException(status_code=503, detail="Profile store unavailable")
    return {"requested": len(request.user_ids), "warmed": warmed}


@router.get("/cache/stats", summary="Cache statistics")
async def cache_stats(engine: RecommendationEngine = Depends(get_engine)):
    return await engine.get_cache_stats()


def get_session_scope():
    """Session context manager; /health opens it itself so connection errors are reported."""
    return get_db


@router.get("/health", summary="Health check")
def health(session_scope=Depends(get_session_scope)):
    database = "ok"
    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"⚠️ Database health check failed: {e}")
        database = "unavailable"
    return {"status": "ok", "version": ALGORITHM_VERSION, "database": database}
