"""
LiteLLM service for hosted LLM access.

Provides:
- API key validation for the Anthropic provider
- A single best-effort completion call (no retry, no backoff)
"""

import os
from typing import List, Dict, Any, Optional

import litellm
from litellm import completion

from weave.errors import LLMConfigurationError, UpstreamServiceError
from weave.logging_config import get_logger

# Drop params a model does not accept instead of failing the call
litellm.drop_params = True

logger = get_logger(__name__)

ANTHROPIC_KEY_PREFIX = "sk-ant-"


def ensure_api_key(model: str) -> None:
    """
    Fail fast when the provider key for `model` is missing or malformed.

    Raises:
        LLMConfigurationError: If an anthropic/* model has no usable key
    """
    if not model.startswith("anthropic/"):
        return
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise LLMConfigurationError(detail="ANTHROPIC_API_KEY environment variable is not set")
    if not api_key.startswith(ANTHROPIC_KEY_PREFIX):
        raise LLMConfigurationError(detail="ANTHROPIC_API_KEY does not appear to be a valid Anthropic API key")


def _response_text(resp: Any) -> str:
    # Some providers return an empty or tool-only first block
    try:
        return resp.choices[0].message.content or ""
    except (AttributeError, IndexError, TypeError):
        return ""


def call_llm(
    messages: List[Dict[str, str]],
    model: str,
    max_tokens: int,
    temperature: Optional[float] = None,
) -> str:
    """
    Call the LLM via LiteLLM.

    Args:
        messages: List of message dicts with "role" and "content"
        model: Model identifier (e.g., "anthropic/claude-sonnet-4-20250514")
        max_tokens: Maximum tokens to generate
        temperature: Optional sampling temperature. If None, uses model default.

    Returns:
        Generated text response (may be empty)

    Raises:
        LLMConfigurationError: If the API key is missing or malformed
        UpstreamServiceError: If the call fails for any other reason
    """
    ensure_api_key(model)

    kwargs: Dict[str, Any] = {"model": model, "messages": messages, "max_tokens": max_tokens}
    if temperature is not None:
        kwargs["temperature"] = temperature

    try:
        resp = completion(**kwargs)
    except Exception as e:
        logger.error("LLM call to %s failed: %s", model, e)
        raise UpstreamServiceError(detail=f"LLM call failed: {e}") from e

    return _response_text(resp)
