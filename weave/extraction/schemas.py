"""
Pydantic schemas for records produced by the extraction pipeline.

LLM output is validated record by record against these models. Loose values
the model commonly gets wrong (type names, years as strings, long context) are
coerced; anything else that fails validation is dropped by the caller.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


ARTIFACT_TYPES = ("book", "album", "film", "essay", "artwork", "podcast", "article", "other")
CONCEPT_TYPES = ("theme", "movement", "theory", "technique", "style", "genre", "other")
PATTERN_TYPES = ("thematic", "stylistic", "temporal", "creator", "medium", "personal")
RELATIONSHIP_TYPES = (
    "influenced_by", "responds_to", "builds_on",
    "references", "adapts", "samples", "quotes",
    "explores_similar_themes", "contrasts_with", "complements",
    "uses_similar_technique", "similar_style", "same_genre",
    "reminds_me_of", "pairs_well_with", "discovered_through",
)
ASSISTANT_SENDERS = {"assistant", "bobbin", "ai"}

MAX_CONTEXT_CHARS = 120

ArtifactType = Literal["book", "album", "film", "essay", "artwork", "podcast", "article", "other"]
ConceptType = Literal["theme", "movement", "theory", "technique", "style", "genre", "other"]
PatternType = Literal["thematic", "stylistic", "temporal", "creator", "medium", "personal"]
RelationshipType = Literal[
    "influenced_by", "responds_to", "builds_on",
    "references", "adapts", "samples", "quotes",
    "explores_similar_themes", "contrasts_with", "complements",
    "uses_similar_technique", "similar_style", "same_genre",
    "reminds_me_of", "pairs_well_with", "discovered_through",
]


def _coerce_choice(value: Any, choices, fallback: str) -> str:
    text = str(value or "").strip().lower()
    return text if text in choices else fallback


class Message(BaseModel):
    """One transcript turn. `role` is accepted in place of `sender`."""
    sender: Literal["user", "assistant"]
    content: str
    timestamp: Optional[datetime] = None
    media: Optional[dict] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_sender(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            sender = data.get("sender") or data.get("role") or ""
            sender = str(sender).strip().lower()
            data["sender"] = "assistant" if sender in ASSISTANT_SENDERS else sender
        return data


class ExtractedArtifact(BaseModel):
    """A cultural work found in a conversation."""
    title: str = Field(..., min_length=1)
    type: ArtifactType = "other"
    creator: Optional[str] = None
    year: Optional[int] = None
    medium: Optional[str] = None
    context: str = Field("", max_length=MAX_CONTEXT_CHARS)
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> str:
        return _coerce_choice(value, ARTIFACT_TYPES, "other")

    @field_validator("year", mode="before")
    @classmethod
    def _coerce_year(cls, value: Any) -> Optional[int]:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @field_validator("context", mode="before")
    @classmethod
    def _truncate_context(cls, value: Any) -> str:
        return str(value or "").strip()[:MAX_CONTEXT_CHARS]


class ExtractedConcept(BaseModel):
    name: str = Field(..., min_length=1)
    type: ConceptType = "other"
    context: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> str:
        return _coerce_choice(value, CONCEPT_TYPES, "other")


class ExtractedConnection(BaseModel):
    """A relationship between two works, stated by the user or suggested."""
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    relationship_type: RelationshipType = "reminds_me_of"
    description: str = ""
    user_insight: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    connection_source: Literal["user_discovered", "ai_suggested"]

    @field_validator("relationship_type", mode="before")
    @classmethod
    def _coerce_relationship(cls, value: Any) -> str:
        return _coerce_choice(value, RELATIONSHIP_TYPES, "reminds_me_of")


class EntityExtraction(BaseModel):
    artifacts: List[ExtractedArtifact] = Field(default_factory=list)
    concepts: List[ExtractedConcept] = Field(default_factory=list)
    user_stated_connections: List[ExtractedConnection] = Field(default_factory=list)
    suggested_connections: List[ExtractedConnection] = Field(default_factory=list)


class RawPattern(BaseModel):
    """A pattern as the model states it, before matching against the store."""
    pattern: str = Field(..., min_length=1)
    description: Optional[str] = None
    artifact_titles: List[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    pattern_type: PatternType = "thematic"

    @field_validator("pattern_type", mode="before")
    @classmethod
    def _coerce_pattern_type(cls, value: Any) -> str:
        return _coerce_choice(value, PATTERN_TYPES, "thematic")

    @field_validator("artifact_titles", mode="before")
    @classmethod
    def _clean_titles(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(t).strip() for t in value if str(t).strip()]


class DetectedPattern(BaseModel):
    id: str
    pattern: str
    description: str
    artifact_ids: List[str]
    artifact_titles: List[str]
    confidence: float
    pattern_type: PatternType
    explored: bool = False


class Recommendation(BaseModel):
    title: str = Field(..., min_length=1)
    creator: Optional[str] = None
    type: ArtifactType = "other"
    reason: str = ""
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> str:
        return _coerce_choice(value, ARTIFACT_TYPES, "other")
