"""
Session authentication for API routes.

A request is authenticated by a session token, sent either as the session
cookie or as `Authorization: Bearer <token>`. Anything else fails closed.
"""

import sqlite3
from contextlib import closing
from typing import Optional

from fastapi import Request

from weave import storage
from weave.config import get_setting
from weave.db import get_db_connection
from weave.errors import AuthenticationError
from weave.logging_config import get_logger

logger = get_logger(__name__)


def session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(get_setting("session_cookie_name"))
    if token:
        return token
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def get_current_user(request: Request) -> str:
    """
    FastAPI dependency returning the authenticated user's id.

    Raises:
        AuthenticationError: No token, unknown or expired token, or the
            session store could not be read
    """
    token = session_token(request)
    if not token:
        raise AuthenticationError(detail="No session token")

    try:
        with closing(get_db_connection()) as conn:
            user_id = storage.get_session_user(conn, token)
    except sqlite3.Error as e:
        logger.error("Session lookup failed: %s", e)
        raise AuthenticationError(detail=f"Session lookup failed: {e}") from e

    if not user_id:
        raise AuthenticationError(detail="Invalid or expired session")
    return user_id
