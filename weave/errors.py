"""
Weave error hierarchy.

Every error raised on purpose by the backend inherits from WeaveError, which
carries the HTTP status and the message shown to the client. Anything more
detailed stays in the server log.

Hierarchy:
    WeaveError
    ├── ValidationError            # 400, bad request body
    ├── AuthenticationError        # 401, no or invalid session
    ├── NotFoundError              # 404
    ├── RateLimitError             # 429, sliding window exhausted
    └── UpstreamServiceError       # 500, database or LLM failure
        └── LLMConfigurationError  # 500, API key missing or malformed
"""

from typing import Optional


class WeaveError(Exception):
    """Base class for all Weave errors."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, public_message: Optional[str] = None, detail: Optional[str] = None):
        self.public_message = public_message or self.default_message
        self.detail = detail or self.public_message
        super().__init__(self.detail)


class ValidationError(WeaveError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(WeaveError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(WeaveError):
    status_code = 404
    default_message = "Not found"


class RateLimitError(WeaveError):
    status_code = 429
    default_message = "Too many requests. Please wait a moment and try again."

    def __init__(self, retry_after: float = 0.0, public_message: Optional[str] = None):
        super().__init__(public_message)
        self.retry_after = retry_after


class UpstreamServiceError(WeaveError):
    status_code = 500
    default_message = "Upstream service failed"


class LLMConfigurationError(UpstreamServiceError):
    default_message = "AI service not configured. Please contact support."
