"""
Session API routes.
"""

import sqlite3
from contextlib import closing

from fastapi import APIRouter, Depends, Request, Response

from weave import storage
from weave.auth import get_current_user, session_token
from weave.config import get_setting
from weave.db import get_db_connection
from weave.errors import UpstreamServiceError
from weave.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["sessions"])


@router.post("/logout")
def logout(request: Request, response: Response, user_id: str = Depends(get_current_user)):
    """End the caller's session and clear the session cookie."""
    try:
        with closing(get_db_connection()) as conn:
            storage.delete_session(conn, session_token(request))
    except sqlite3.Error as e:
        logger.exception("Failed to end session for user %s", user_id)
        raise UpstreamServiceError("Failed to log out", detail=str(e)) from e

    response.delete_cookie(get_setting("session_cookie_name"))
    logger.info("User %s logged out", user_id)
    return {"success": True}
