"""
Conversation-to-record extraction pipeline.

Each run is: build prompt -> call LLM -> parse -> validate -> filter
(-> match against stored artifacts, for patterns). LLM transport errors
propagate to the caller. Output that cannot be parsed is reported through
`parse_error` and yields no records.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from weave.config import get_setting
from weave.extraction.filters import filter_by_confidence, validate_records
from weave.extraction.matcher import build_patterns
from weave.extraction.prompts import (
    build_extraction_prompt,
    build_pattern_prompt,
    build_recommendation_prompt,
)
from weave.extraction.response_parser import ParseResult, parse_model_json
from weave.extraction.schemas import (
    DetectedPattern,
    EntityExtraction,
    ExtractedArtifact,
    ExtractedConcept,
    ExtractedConnection,
    Message,
    RawPattern,
    Recommendation,
)
from weave.llm.litellm_service import call_llm
from weave.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class EntityRun:
    extraction: EntityExtraction
    parse_error: Optional[str] = None


@dataclass
class PatternRun:
    patterns: List[DetectedPattern] = field(default_factory=list)
    parse_error: Optional[str] = None


@dataclass
class RecommendationRun:
    recommendations: List[Recommendation] = field(default_factory=list)
    parse_error: Optional[str] = None


def _ask(prompt: str, model: str, max_tokens: int, task: str) -> ParseResult:
    text = call_llm([{"role": "user", "content": prompt}], model, max_tokens=max_tokens)
    result = parse_model_json(text)
    if not result.ok:
        logger.warning("Unparseable %s output (%s): %.200r", task, result.error, text)
    return result


def extract_entities(
    messages: Sequence[Message],
    min_confidence: Optional[float] = None,
    include_suggestions: bool = True,
) -> EntityRun:
    """
    Extract artifacts, concepts and connections from a transcript.

    Artifacts and both connection lists are confidence-filtered; concepts carry
    no confidence and are returned as validated. Suggested connections are
    omitted entirely when `include_suggestions` is False.
    """
    if min_confidence is None:
        min_confidence = get_setting("entity_min_confidence")

    result = _ask(
        build_extraction_prompt(messages),
        get_setting("extraction_model"),
        get_setting("extraction_max_tokens"),
        "entity extraction",
    )
    if not result.ok:
        return EntityRun(extraction=EntityExtraction(), parse_error=result.error)

    data = result.data
    artifacts = validate_records(data.get("artifacts"), ExtractedArtifact)
    concepts = validate_records(data.get("concepts"), ExtractedConcept)
    stated = validate_records(
        data.get("user_stated_connections"), ExtractedConnection,
        overrides={"connection_source": "user_discovered"},
    )
    suggested = []
    if include_suggestions:
        suggested = validate_records(
            data.get("suggested_connections"), ExtractedConnection,
            overrides={"connection_source": "ai_suggested"},
        )

    extraction = EntityExtraction(
        artifacts=filter_by_confidence(artifacts, min_confidence),
        concepts=concepts,
        user_stated_connections=filter_by_confidence(stated, min_confidence),
        suggested_connections=filter_by_confidence(suggested, min_confidence),
    )
    return EntityRun(extraction=extraction)


def extract_recommendations(
    messages: Sequence[Message],
    min_confidence: Optional[float] = None,
) -> RecommendationRun:
    """
    Extract works recommended during a conversation.

    Recommendations without a confidence are kept; those with one below the
    threshold are dropped.
    """
    if min_confidence is None:
        min_confidence = get_setting("recommendation_min_confidence")

    result = _ask(
        build_recommendation_prompt(messages),
        get_setting("extraction_model"),
        get_setting("recommendation_max_tokens"),
        "recommendation",
    )
    if not result.ok:
        return RecommendationRun(parse_error=result.error)

    recommendations = validate_records(result.data.get("recommendations"), Recommendation)
    return RecommendationRun(
        recommendations=filter_by_confidence(recommendations, min_confidence, keep_missing=True)
    )


def detect_patterns(
    artifacts: Sequence[Dict[str, Any]],
    min_confidence: Optional[float] = None,
) -> PatternRun:
    """Detect taste patterns across stored artifacts (dicts with id and title)."""
    if min_confidence is None:
        min_confidence = get_setting("pattern_min_confidence")

    result = _ask(
        build_pattern_prompt(artifacts, min_confidence),
        get_setting("extraction_model"),
        get_setting("pattern_max_tokens"),
        "pattern detection",
    )
    if not result.ok:
        return PatternRun(parse_error=result.error)

    raw_items = result.data.get("patterns")
    if not isinstance(raw_items, list):
        return PatternRun(parse_error="missing patterns list")

    raw_patterns = validate_records(raw_items, RawPattern)
    return PatternRun(patterns=build_patterns(raw_patterns, artifacts, min_confidence))
