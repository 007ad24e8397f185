"""
Pattern detection API routes.

Detected patterns are cached per user and reused until the user's artifact
count changes or a refresh is forced.
"""

import sqlite3
from contextlib import closing
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path as PathParam

from weave import storage
from weave.auth import get_current_user
from weave.config import get_setting
from weave.db import get_db_connection
from weave.errors import LLMConfigurationError, NotFoundError, UpstreamServiceError
from weave.extraction import pipeline
from weave.logging_config import get_logger
from weave.models import DetectPatternsRequest, DetectPatternsResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["patterns"])

FAILURE_MESSAGE = "Failed to detect patterns. Please try again."


@router.post("/detect-patterns", response_model=DetectPatternsResponse, response_model_exclude_none=True)
def detect_patterns(
    request: Optional[DetectPatternsRequest] = Body(None),
    user_id: str = Depends(get_current_user),
) -> DetectPatternsResponse:
    """Detect taste patterns across the user's stored artifacts."""
    force_refresh = bool(request and request.force_refresh)
    min_artifacts = get_setting("min_artifacts_for_patterns")

    try:
        with closing(get_db_connection()) as conn:
            artifacts = storage.list_artifacts(conn, user_id)
            if len(artifacts) < min_artifacts:
                return DetectPatternsResponse(
                    patterns=[],
                    cached=False,
                    message=f"Need at least {min_artifacts} artifacts to detect patterns",
                )

            meta = storage.get_pattern_cache_meta(conn, user_id)
            cache_is_valid = (
                meta is not None
                and meta["artifact_count_at_compute"] == len(artifacts)
                and not force_refresh
            )
            if cache_is_valid:
                cached = storage.load_cached_patterns(conn, user_id)
                if cached:
                    return DetectPatternsResponse(
                        patterns=cached, cached=True, artifact_count=len(artifacts)
                    )

            run = pipeline.detect_patterns(artifacts)
            if run.parse_error:
                logger.info("Pattern detection for user %s returned no parseable output", user_id)
                return DetectPatternsResponse(
                    patterns=[],
                    cached=False,
                    message="Could not parse pattern analysis",
                )

            storage.replace_cached_patterns(conn, user_id, run.patterns, len(artifacts))
            patterns = storage.load_cached_patterns(conn, user_id)
    except LLMConfigurationError:
        raise
    except UpstreamServiceError as e:
        raise UpstreamServiceError(FAILURE_MESSAGE, detail=e.detail) from e
    except sqlite3.Error as e:
        logger.exception("Database error while detecting patterns for user %s", user_id)
        raise UpstreamServiceError(FAILURE_MESSAGE, detail=str(e)) from e

    return DetectPatternsResponse(patterns=patterns, cached=False, artifact_count=len(artifacts))


@router.post("/patterns/{pattern_id}/explored")
def mark_pattern_explored(
    pattern_id: str = PathParam(..., description="Pattern ID"),
    user_id: str = Depends(get_current_user),
):
    """Mark a cached pattern as explored."""
    try:
        with closing(get_db_connection()) as conn:
            updated = storage.mark_pattern_explored(conn, user_id, pattern_id)
    except sqlite3.Error as e:
        logger.exception("Failed to update pattern %s", pattern_id)
        raise UpstreamServiceError("Failed to update pattern", detail=str(e)) from e
    if not updated:
        raise NotFoundError("Pattern not found")
    return {"success": True, "id": pattern_id, "explored": True}
