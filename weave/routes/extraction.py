"""
Extraction API routes: artifacts/concepts/connections and recommendations
from a conversation transcript.

Model output that cannot be parsed is answered with an empty success; only
transport and configuration failures surface as errors.
"""

from fastapi import APIRouter, Depends

from weave.auth import get_current_user
from weave.errors import LLMConfigurationError, UpstreamServiceError, ValidationError
from weave.extraction import pipeline
from weave.logging_config import get_logger
from weave.models import (
    ExtractEntitiesRequest,
    ExtractEntitiesResponse,
    ExtractionSummary,
    ExtractRecommendationsRequest,
    ExtractRecommendationsResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["extraction"])


@router.post("/extract-entities", response_model=ExtractEntitiesResponse)
def extract_entities(
    request: ExtractEntitiesRequest,
    user_id: str = Depends(get_current_user),
) -> ExtractEntitiesResponse:
    """Extract cultural artifacts, concepts and connections from a conversation."""
    if not request.messages:
        raise ValidationError("No messages provided")

    try:
        run = pipeline.extract_entities(
            request.messages,
            min_confidence=request.options.min_confidence,
            include_suggestions=request.options.include_suggestions,
        )
    except LLMConfigurationError:
        raise
    except UpstreamServiceError as e:
        raise UpstreamServiceError("Failed to extract entities from conversation", detail=e.detail) from e

    if run.parse_error:
        logger.info("Entity extraction for user %s returned no parseable output", user_id)

    extraction = run.extraction
    return ExtractEntitiesResponse(
        conversation_id=request.conversation_id,
        extraction=extraction,
        summary=ExtractionSummary(
            artifacts_found=len(extraction.artifacts),
            concepts_found=len(extraction.concepts),
            user_connections=len(extraction.user_stated_connections),
            suggested_connections=len(extraction.suggested_connections),
        ),
    )


@router.post("/extract-recommendations", response_model=ExtractRecommendationsResponse)
def extract_recommendations(
    request: ExtractRecommendationsRequest,
    user_id: str = Depends(get_current_user),
) -> ExtractRecommendationsResponse:
    """Extract works recommended to the user during a conversation."""
    if not request.messages:
        raise ValidationError("No messages provided")

    try:
        run = pipeline.extract_recommendations(request.messages)
    except LLMConfigurationError:
        raise
    except UpstreamServiceError as e:
        raise UpstreamServiceError("Failed to extract recommendations. Please try again.", detail=e.detail) from e

    if run.parse_error:
        logger.info("Recommendation extraction for user %s returned no parseable output", user_id)

    return ExtractRecommendationsResponse(recommendations=run.recommendations)
