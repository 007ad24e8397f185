"""
Pydantic models for API requests and responses.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any

from weave.extraction.schemas import (
    ArtifactType,
    DetectedPattern,
    EntityExtraction,
    Message,
    Recommendation,
)


class Scrap(BaseModel):
    """The saved item a chat is about."""
    type: str = "text"
    content: str = ""
    title: Optional[str] = None
    source: Optional[str] = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    scrap: Scrap
    chat_history: List[Message] = Field(default_factory=list, alias="chatHistory")


class ChatResponse(BaseModel):
    success: bool = True
    response: str


class ExtractionOptions(BaseModel):
    include_suggestions: bool = True
    min_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class ExtractEntitiesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[Message] = Field(default_factory=list)
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    options: ExtractionOptions = Field(default_factory=ExtractionOptions)


class ExtractionSummary(BaseModel):
    artifacts_found: int
    concepts_found: int
    user_connections: int
    suggested_connections: int


class ExtractEntitiesResponse(BaseModel):
    success: bool = True
    conversation_id: Optional[str] = None
    extraction: EntityExtraction
    summary: ExtractionSummary


class ExtractRecommendationsRequest(BaseModel):
    messages: List[Message] = Field(default_factory=list)


class ExtractRecommendationsResponse(BaseModel):
    success: bool = True
    recommendations: List[Recommendation]


class DetectPatternsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    force_refresh: bool = Field(False, alias="forceRefresh")


class DetectPatternsResponse(BaseModel):
    success: bool = True
    patterns: List[DetectedPattern]
    cached: bool = False
    artifact_count: Optional[int] = None
    message: Optional[str] = None


class SaveConversationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[Message] = Field(default_factory=list)
    custom_title: Optional[str] = Field(None, alias="customTitle")


class SaveConversationResponse(BaseModel):
    success: bool = True
    scrap: Dict[str, Any]


class ChatHistoryRequest(BaseModel):
    messages: List[Message] = Field(default_factory=list)


class ChatHistoryResponse(BaseModel):
    success: bool = True
    history: Optional[Dict[str, Any]] = None


class ArtifactCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    type: ArtifactType = "other"
    creator: Optional[str] = None
    year: Optional[int] = None
    medium: Optional[str] = None
    user_notes: Optional[str] = None


class ArtifactUpdateRequest(BaseModel):
    """Partial update; only the fields sent are changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    type: Optional[ArtifactType] = None
    creator: Optional[str] = None
    year: Optional[int] = None
    medium: Optional[str] = None
    user_notes: Optional[str] = None


class StoredArtifact(BaseModel):
    id: str
    user_id: str
    type: str
    title: str
    creator: Optional[str] = None
    year: Optional[int] = None
    medium: Optional[str] = None
    user_notes: Optional[str] = None
    created_at: str


class ArtifactResponse(BaseModel):
    success: bool = True
    artifact: StoredArtifact
    created: bool = True


class ArtifactListResponse(BaseModel):
    success: bool = True
    artifacts: List[StoredArtifact]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class SetupCheckResponse(BaseModel):
    initialized: bool
