"""
SQLite-backed persistence for Weave.

Holds sessions, stored artifacts, scraps (saved conversations), per-scrap chat
history and the per-user pattern cache. Every public function makes sure the
tables exist first, so a fresh database file works without a setup step.
"""

from __future__ import annotations

import json
import secrets
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from weave.extraction.schemas import DetectedPattern


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def ensure_tables(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            token TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            created_at TEXT NOT NULL,
            expires_at TEXT
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS artifacts (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'other',
            title TEXT NOT NULL,
            creator TEXT,
            year INTEGER,
            medium TEXT,
            user_notes TEXT,
            created_at TEXT NOT NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_artifacts_user ON artifacts(user_id, created_at)")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS scraps (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            type TEXT NOT NULL,
            title TEXT,
            content TEXT,
            observations TEXT,
            created_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chat_history (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            scrap_id TEXT NOT NULL,
            messages_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (user_id, scrap_id)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS cached_patterns (
            user_id TEXT NOT NULL,
            id TEXT NOT NULL,
            pattern TEXT NOT NULL,
            description TEXT,
            artifact_ids_json TEXT NOT NULL,
            artifact_titles_json TEXT NOT NULL,
            confidence REAL NOT NULL,
            pattern_type TEXT NOT NULL,
            explored INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            PRIMARY KEY (user_id, id)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS pattern_cache_meta (
            user_id TEXT PRIMARY KEY,
            last_computed_at TEXT NOT NULL,
            artifact_count_at_compute INTEGER NOT NULL
        )
        """
    )
    conn.commit()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def create_session(conn: sqlite3.Connection, user_id: str, ttl_seconds: Optional[int] = None) -> str:
    """Create a session for `user_id` and return its token."""
    ensure_tables(conn)
    token = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc)
    expires_at = (now + timedelta(seconds=ttl_seconds)).isoformat() if ttl_seconds else None
    conn.execute(
        "INSERT INTO sessions (token, user_id, created_at, expires_at) VALUES (?, ?, ?, ?)",
        (token, user_id, now.isoformat(), expires_at),
    )
    conn.commit()
    return token


def get_session_user(conn: sqlite3.Connection, token: str) -> Optional[str]:
    """Return the user id for a live session token, or None."""
    ensure_tables(conn)
    row = conn.execute(
        "SELECT user_id, expires_at FROM sessions WHERE token = ?", (token,)
    ).fetchone()
    if not row:
        return None
    if row["expires_at"] and row["expires_at"] <= _now():
        return None
    return row["user_id"]


def delete_session(conn: sqlite3.Connection, token: str) -> None:
    ensure_tables(conn)
    conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
    conn.commit()


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------

def create_artifact(
    conn: sqlite3.Connection,
    user_id: str,
    title: str,
    artifact_type: str = "other",
    *,
    creator: Optional[str] = None,
    year: Optional[int] = None,
    medium: Optional[str] = None,
    user_notes: Optional[str] = None,
) -> Dict[str, Any]:
    ensure_tables(conn)
    artifact = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "type": artifact_type,
        "title": title,
        "creator": creator,
        "year": year,
        "medium": medium,
        "user_notes": user_notes,
        "created_at": _now(),
    }
    conn.execute(
        """
        INSERT INTO artifacts (id, user_id, type, title, creator, year, medium, user_notes, created_at)
        VALUES (:id, :user_id, :type, :title, :creator, :year, :medium, :user_notes, :created_at)
        """,
        artifact,
    )
    conn.commit()
    return artifact


def list_artifacts(conn: sqlite3.Connection, user_id: str) -> List[Dict[str, Any]]:
    """All of a user's artifacts, newest first."""
    ensure_tables(conn)
    rows = conn.execute(
        """
        SELECT id, user_id, type, title, creator, year, medium, user_notes, created_at
        FROM artifacts
        WHERE user_id = ?
        ORDER BY created_at DESC, rowid DESC
        """,
        (user_id,),
    ).fetchall()
    return [dict(r) for r in rows]


ARTIFACT_UPDATABLE_FIELDS = ("type", "title", "creator", "year", "medium", "user_notes")


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    return " ".join((a or "").split()).casefold() == " ".join((b or "").split()).casefold()


def get_artifact(conn: sqlite3.Connection, user_id: str, artifact_id: str) -> Optional[Dict[str, Any]]:
    ensure_tables(conn)
    row = conn.execute(
        """
        SELECT id, user_id, type, title, creator, year, medium, user_notes, created_at
        FROM artifacts
        WHERE user_id = ? AND id = ?
        """,
        (user_id, artifact_id),
    ).fetchone()
    return dict(row) if row else None


def find_artifact_by_title_and_creator(
    conn: sqlite3.Connection,
    user_id: str,
    title: str,
    creator: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Return the user's artifact with the same title (case-insensitive), or None.

    When `creator` is given the creator must match too; without one, any
    artifact with the title counts.
    """
    for artifact in list_artifacts(conn, user_id):
        if not _same_text(artifact["title"], title):
            continue
        if creator and not _same_text(artifact["creator"], creator):
            continue
        return artifact
    return None


def update_artifact(
    conn: sqlite3.Connection,
    user_id: str,
    artifact_id: str,
    fields: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Update some columns of one of the user's artifacts.

    Returns the updated row, or None if the user has no such artifact. The
    user's pattern cache is invalidated since titles may have changed.
    """
    ensure_tables(conn)
    changes = {k: v for k, v in fields.items() if k in ARTIFACT_UPDATABLE_FIELDS}
    if get_artifact(conn, user_id, artifact_id) is None:
        return None
    if changes:
        assignments = ", ".join(f"{column} = :{column}" for column in changes)
        with conn:
            conn.execute(
                f"UPDATE artifacts SET {assignments} WHERE user_id = :user_id AND id = :id",
                {**changes, "user_id": user_id, "id": artifact_id},
            )
            _invalidate_pattern_cache(conn, user_id)
    return get_artifact(conn, user_id, artifact_id)


def delete_artifact(conn: sqlite3.Connection, user_id: str, artifact_id: str) -> bool:
    """Delete one of the user's artifacts and invalidate their pattern cache."""
    ensure_tables(conn)
    with conn:
        cursor = conn.execute(
            "DELETE FROM artifacts WHERE user_id = ? AND id = ?", (user_id, artifact_id)
        )
        if cursor.rowcount > 0:
            _invalidate_pattern_cache(conn, user_id)
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Scraps and chat history
# ---------------------------------------------------------------------------

def create_conversation_scrap(conn: sqlite3.Connection, user_id: str, title: str, content: str) -> Dict[str, Any]:
    """Persist a saved conversation as a scrap of type 'conversation'."""
    ensure_tables(conn)
    scrap = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "type": "conversation",
        "title": title,
        "content": content,
        "observations": None,
        "created_at": _now(),
    }
    conn.execute(
        """
        INSERT INTO scraps (id, user_id, type, title, content, observations, created_at)
        VALUES (:id, :user_id, :type, :title, :content, :observations, :created_at)
        """,
        scrap,
    )
    conn.commit()
    return scrap


def _history_from_row(row: sqlite3.Row) -> Dict[str, Any]:
    try:
        messages = json.loads(row["messages_json"])
    except (json.JSONDecodeError, TypeError):
        messages = []
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "scrap_id": row["scrap_id"],
        "messages": messages,
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def get_chat_history(conn: sqlite3.Connection, user_id: str, scrap_id: str) -> Optional[Dict[str, Any]]:
    ensure_tables(conn)
    row = conn.execute(
        "SELECT * FROM chat_history WHERE user_id = ? AND scrap_id = ?", (user_id, scrap_id)
    ).fetchone()
    return _history_from_row(row) if row else None


def save_chat_history(
    conn: sqlite3.Connection,
    user_id: str,
    scrap_id: str,
    messages: Sequence[Dict[str, Any]],
) -> Dict[str, Any]:
    """Insert or replace the chat history for one scrap."""
    ensure_tables(conn)
    now = _now()
    conn.execute(
        """
        INSERT INTO chat_history (id, user_id, scrap_id, messages_json, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, scrap_id) DO UPDATE SET
            messages_json=excluded.messages_json,
            updated_at=excluded.updated_at
        """,
        (str(uuid.uuid4()), user_id, scrap_id, json.dumps(list(messages), default=str), now, now),
    )
    conn.commit()
    return get_chat_history(conn, user_id, scrap_id)


def delete_chat_history(conn: sqlite3.Connection, user_id: str, scrap_id: str) -> bool:
    ensure_tables(conn)
    cursor = conn.execute(
        "DELETE FROM chat_history WHERE user_id = ? AND scrap_id = ?", (user_id, scrap_id)
    )
    conn.commit()
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Pattern cache
# ---------------------------------------------------------------------------

def get_pattern_cache_meta(conn: sqlite3.Connection, user_id: str) -> Optional[Dict[str, Any]]:
    ensure_tables(conn)
    row = conn.execute(
        "SELECT user_id, last_computed_at, artifact_count_at_compute FROM pattern_cache_meta WHERE user_id = ?",
        (user_id,),
    ).fetchone()
    return dict(row) if row else None


def load_cached_patterns(conn: sqlite3.Connection, user_id: str) -> List[DetectedPattern]:
    """Cached patterns for a user, highest confidence first."""
    ensure_tables(conn)
    rows = conn.execute(
        """
        SELECT id, pattern, description, artifact_ids_json, artifact_titles_json,
               confidence, pattern_type, explored
        FROM cached_patterns
        WHERE user_id = ?
        ORDER BY confidence DESC, rowid ASC
        """,
        (user_id,),
    ).fetchall()
    return [
        DetectedPattern(
            id=r["id"],
            pattern=r["pattern"],
            description=r["description"] or r["pattern"],
            artifact_ids=json.loads(r["artifact_ids_json"]),
            artifact_titles=json.loads(r["artifact_titles_json"]),
            confidence=float(r["confidence"]),
            pattern_type=r["pattern_type"],
            explored=bool(r["explored"]),
        )
        for r in rows
    ]


def replace_cached_patterns(
    conn: sqlite3.Connection,
    user_id: str,
    patterns: Sequence[DetectedPattern],
    artifact_count: int,
) -> None:
    """Swap a user's cached patterns and record the artifact count they were computed from."""
    ensure_tables(conn)
    now = _now()
    with conn:
        conn.execute("DELETE FROM cached_patterns WHERE user_id = ?", (user_id,))
        conn.executemany(
            """
            INSERT OR IGNORE INTO cached_patterns
                (user_id, id, pattern, description, artifact_ids_json, artifact_titles_json,
                 confidence, pattern_type, explored, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
            """,
            [
                (
                    user_id,
                    p.id,
                    p.pattern,
                    p.description,
                    json.dumps(p.artifact_ids),
                    json.dumps(p.artifact_titles),
                    p.confidence,
                    p.pattern_type,
                    now,
                )
                for p in patterns
            ],
        )
        conn.execute(
            """
            INSERT INTO pattern_cache_meta (user_id, last_computed_at, artifact_count_at_compute)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                last_computed_at=excluded.last_computed_at,
                artifact_count_at_compute=excluded.artifact_count_at_compute
            """,
            (user_id, now, artifact_count),
        )


def _invalidate_pattern_cache(conn: sqlite3.Connection, user_id: str) -> None:
    # Caller owns the transaction
    conn.execute("DELETE FROM pattern_cache_meta WHERE user_id = ?", (user_id,))


def mark_pattern_explored(conn: sqlite3.Connection, user_id: str, pattern_id: str) -> bool:
    ensure_tables(conn)
    cursor = conn.execute(
        "UPDATE cached_patterns SET explored = 1 WHERE user_id = ? AND id = ?",
        (user_id, pattern_id),
    )
    conn.commit()
    return cursor.rowcount > 0
