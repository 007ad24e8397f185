"""
Chat API routes: the companion chat about a saved scrap, and its history.
"""

import sqlite3
from contextlib import closing

from fastapi import APIRouter, Depends, Path as PathParam, Request, Response

from weave import storage
from weave.auth import get_current_user
from weave.config import get_setting
from weave.db import get_db_connection
from weave.errors import LLMConfigurationError, RateLimitError, UpstreamServiceError
from weave.extraction.prompts import build_chat_prompt
from weave.llm.litellm_service import call_llm
from weave.logging_config import get_logger
from weave.models import ChatHistoryRequest, ChatHistoryResponse, ChatRequest, ChatResponse
from weave.rate_limiter import SlidingWindowRateLimiter

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def charge_rate_limit(limiter: SlidingWindowRateLimiter, user_id: str, response: Response) -> None:
    """Count one request against the user's window, or raise RateLimitError."""
    decision = limiter.check(user_id)
    if not decision.allowed:
        logger.info("Rate limit hit for user %s (retry in %.1fs)", user_id, decision.retry_after)
        raise RateLimitError(retry_after=decision.retry_after)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    response: Response,
    user_id: str = Depends(get_current_user),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> ChatResponse:
    """
    Reply to one chat turn about a scrap.

    Only requests that pass authentication and body validation are counted
    against the rate limit.
    """
    charge_rate_limit(limiter, user_id, response)

    prompt = build_chat_prompt(request.message, request.scrap.model_dump(), request.chat_history)

    try:
        text = call_llm(
            [{"role": "user", "content": prompt}],
            get_setting("chat_model"),
            max_tokens=get_setting("chat_max_tokens"),
        )
    except LLMConfigurationError:
        raise
    except UpstreamServiceError as e:
        raise UpstreamServiceError("Failed to process chat request", detail=e.detail) from e

    return ChatResponse(response=text)


@router.get("/chat-history/{scrap_id}", response_model=ChatHistoryResponse)
def get_chat_history(
    scrap_id: str = PathParam(..., description="Scrap ID"),
    user_id: str = Depends(get_current_user),
):
    """Get the saved chat for a scrap (history is null when none exists)."""
    try:
        with closing(get_db_connection()) as conn:
            history = storage.get_chat_history(conn, user_id, scrap_id)
    except sqlite3.Error as e:
        logger.exception("Failed to load chat history for scrap %s", scrap_id)
        raise UpstreamServiceError("Failed to load chat history", detail=str(e)) from e
    return ChatHistoryResponse(history=history)


@router.post("/chat-history/{scrap_id}", response_model=ChatHistoryResponse)
def save_chat_history(
    payload: ChatHistoryRequest,
    scrap_id: str = PathParam(..., description="Scrap ID"),
    user_id: str = Depends(get_current_user),
):
    """Replace the saved chat for a scrap."""
    messages = [m.model_dump(mode="json", exclude_none=True) for m in payload.messages]
    try:
        with closing(get_db_connection()) as conn:
            history = storage.save_chat_history(conn, user_id, scrap_id, messages)
    except sqlite3.Error as e:
        logger.exception("Failed to save chat history for scrap %s", scrap_id)
        raise UpstreamServiceError("Failed to save chat history", detail=str(e)) from e
    return ChatHistoryResponse(history=history)


@router.delete("/chat-history/{scrap_id}")
def delete_chat_history(
    scrap_id: str = PathParam(..., description="Scrap ID"),
    user_id: str = Depends(get_current_user),
):
    """Delete the saved chat for a scrap."""
    try:
        with closing(get_db_connection()) as conn:
            deleted = storage.delete_chat_history(conn, user_id, scrap_id)
    except sqlite3.Error as e:
        logger.exception("Failed to delete chat history for scrap %s", scrap_id)
        raise UpstreamServiceError("Failed to delete chat history", detail=str(e)) from e
    return {"success": True, "deleted": deleted}
