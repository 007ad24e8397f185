"""
Conversation and artifact API routes.
"""
import json
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Path as PathParam

from weave import storage
from weave.auth import get_current_user
from weave.db import get_db_connection
from weave.errors import NotFoundError, UpstreamServiceError, ValidationError
from weave.extraction.schemas import Message
from weave.logging_config import get_logger
from weave.models import (
    ArtifactCreateRequest,
    ArtifactListResponse,
    ArtifactResponse,
    ArtifactUpdateRequest,
    SaveConversationRequest,
    SaveConversationResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["conversations"])

DEFAULT_TITLE = "Conversation with Bobbin"
MAX_TITLE_CHARS = 100


def conversation_title(messages: List[Message], custom_title: Optional[str] = None) -> str:
    """Custom title, else the start of the first user message, else a default."""
    if custom_title and custom_title.strip():
        return custom_title.strip()
    first_user = next((m for m in messages if m.sender == "user"), None)
    if first_user and first_user.content.strip():
        return first_user.content[:MAX_TITLE_CHARS]
    return DEFAULT_TITLE


def serialize_messages(messages: List[Message]) -> str:
    """JSON-encode a transcript for storage; missing timestamps become now."""
    now = datetime.now(timezone.utc)
    data = []
    for msg in messages:
        timestamp = msg.timestamp or now
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        data.append({
            "sender": msg.sender,
            "content": msg.content,
            "timestamp": timestamp.isoformat(),
            "media": msg.media,
        })
    return json.dumps(data)


@router.post("/save-conversation", response_model=SaveConversationResponse)
def save_conversation(
    request: SaveConversationRequest,
    user_id: str = Depends(get_current_user),
) -> SaveConversationResponse:
    """Save a chat transcript as a conversation scrap."""
    if not request.messages:
        raise ValidationError("No messages to save")

    title = conversation_title(request.messages, request.custom_title)
    content = serialize_messages(request.messages)

    try:
        with closing(get_db_connection()) as conn:
            scrap = storage.create_conversation_scrap(conn, user_id, title, content)
    except sqlite3.Error as e:
        logger.exception("Failed to save conversation for user %s", user_id)
        raise UpstreamServiceError("Failed to save conversation", detail=str(e)) from e

    logger.info("Saved conversation %s (%d messages) for user %s", scrap["id"], len(request.messages), user_id)
    return SaveConversationResponse(scrap=scrap)


@router.get("/artifacts", response_model=ArtifactListResponse)
def list_artifacts(user_id: str = Depends(get_current_user)) -> ArtifactListResponse:
    """List the user's stored artifacts, newest first."""
    try:
        with closing(get_db_connection()) as conn:
            artifacts = storage.list_artifacts(conn, user_id)
    except sqlite3.Error as e:
        logger.exception("Failed to list artifacts for user %s", user_id)
        raise UpstreamServiceError("Failed to load artifacts", detail=str(e)) from e
    return ArtifactListResponse(artifacts=artifacts)


@router.post("/artifacts", response_model=ArtifactResponse)
def create_artifact(
    request: ArtifactCreateRequest,
    user_id: str = Depends(get_current_user),
) -> ArtifactResponse:
    """
    Store a new artifact in the user's collection.

    A work the user already has (same title, and same creator when one is
    given) is returned as-is with `created: false`.
    """
    title = request.title.strip()
    if not title:
        raise ValidationError("Title cannot be empty")

    try:
        with closing(get_db_connection()) as conn:
            existing = storage.find_artifact_by_title_and_creator(conn, user_id, title, request.creator)
            if existing:
                return ArtifactResponse(artifact=existing, created=False)
            artifact = storage.create_artifact(
                conn,
                user_id,
                title,
                request.type,
                creator=request.creator,
                year=request.year,
                medium=request.medium,
                user_notes=request.user_notes,
            )
    except sqlite3.Error as e:
        logger.exception("Failed to create artifact for user %s", user_id)
        raise UpstreamServiceError("Failed to save artifact", detail=str(e)) from e
    return ArtifactResponse(artifact=artifact)


@router.patch("/artifacts/{artifact_id}", response_model=ArtifactResponse)
def update_artifact(
    request: ArtifactUpdateRequest,
    artifact_id: str = PathParam(..., description="Artifact ID"),
    user_id: str = Depends(get_current_user),
) -> ArtifactResponse:
    """Change fields of one of the user's artifacts."""
    fields = request.model_dump(exclude_unset=True)
    if "title" in fields:
        fields["title"] = (fields["title"] or "").strip()
        if not fields["title"]:
            raise ValidationError("Title cannot be empty")
    if "type" in fields and fields["type"] is None:
        del fields["type"]

    try:
        with closing(get_db_connection()) as conn:
            artifact = storage.update_artifact(conn, user_id, artifact_id, fields)
    except sqlite3.Error as e:
        logger.exception("Failed to update artifact %s", artifact_id)
        raise UpstreamServiceError("Failed to update artifact", detail=str(e)) from e
    if artifact is None:
        raise NotFoundError("Artifact not found")
    return ArtifactResponse(artifact=artifact, created=False)


@router.delete("/artifacts/{artifact_id}")
def delete_artifact(
    artifact_id: str = PathParam(..., description="Artifact ID"),
    user_id: str = Depends(get_current_user),
):
    """Remove one of the user's artifacts."""
    try:
        with closing(get_db_connection()) as conn:
            deleted = storage.delete_artifact(conn, user_id, artifact_id)
    except sqlite3.Error as e:
        logger.exception("Failed to delete artifact %s", artifact_id)
        raise UpstreamServiceError("Failed to delete artifact", detail=str(e)) from e
    if not deleted:
        raise NotFoundError("Artifact not found")
    logger.info("Deleted artifact %s for user %s", artifact_id, user_id)
    return {"success": True, "id": artifact_id}
