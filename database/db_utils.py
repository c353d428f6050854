import json
import logging
import os
import sqlite3
from dataclasses import replace
from datetime import datetime

from database.clear_db import clear_sessions
from database.session_item import SessionItem, ordinal_session_name
from emotion_aggregator import TALLY_KEYS, EmotionTally
from errors import MalformedRecordError, PersistenceError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def init_db(db_path):
    """Create the sessions table (and the database's folder) if missing."""
    try:
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        conn = sqlite3.connect(db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT,
                    name TEXT,
                    emotion_data TEXT,
                    rating INTEGER
                )
            """)
            conn.commit()
        finally:
            conn.close()
    except (sqlite3.Error, OSError) as e:
        raise PersistenceError(f"Could not open session database {db_path!r}: {e}") from e


def _is_count(value):
    # bool is an int subclass; True/False are not counts
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_record(record, ordinal=1):
    """
    Check a raw record against the persisted shape and build a SessionItem.

    Args:
        record (dict): {id, created_at, name, emotionData, rating}
        ordinal (int): position used for the fallback name of blank sessions

    Returns:
        SessionItem

    Raises:
        MalformedRecordError: if any field has the wrong shape
    """
    if not isinstance(record, dict):
        raise MalformedRecordError(f"record is not a mapping: {record!r}")

    name = record.get("name")
    if not isinstance(name, str):
        raise MalformedRecordError(f"name must be a string, got {name!r}")

    emotion_data = record.get("emotionData")
    if not isinstance(emotion_data, dict):
        raise MalformedRecordError(f"emotionData must be an object, got {emotion_data!r}")
    for key in TALLY_KEYS:
        if not _is_count(emotion_data.get(key)):
            raise MalformedRecordError(
                f"emotionData.{key} must be a non-negative integer, got {emotion_data.get(key)!r}"
            )

    rating = record.get("rating")
    if rating is not None and not (_is_count(rating) and 1 <= rating <= 5):
        raise MalformedRecordError(f"rating must be 1..5 or null, got {rating!r}")

    created_at = record.get("created_at")
    try:
        created_at = datetime.strptime(created_at, TIMESTAMP_FORMAT) if created_at else datetime.now()
    except (TypeError, ValueError) as e:
        raise MalformedRecordError(f"bad created_at {created_at!r}: {e}") from e

    return SessionItem(
        id=record.get("id"),
        name=name.strip() or ordinal_session_name(ordinal),
        emotion_data=EmotionTally(**{key: emotion_data[key] for key in TALLY_KEYS}),
        rating=rating,
        created_at=created_at,
    )


def save_session_to_db(db_path, item):
    """Insert a session and return the id assigned by sqlite."""
    record = item.to_record()
    try:
        conn = sqlite3.connect(db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO sessions (created_at, name, emotion_data, rating)
                VALUES (?, ?, ?, ?)
            """, (
                item.created_at.strftime(TIMESTAMP_FORMAT),
                record["name"],
                json.dumps(record["emotionData"]),  # serialize dict
                record["rating"],
            ))
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not save session {item.name!r}: {e}") from e


def load_sessions_from_db(db_path):
    """Load all sessions, oldest first. Malformed rows are logged and skipped."""
    try:
        conn = sqlite3.connect(db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT id, created_at, name, emotion_data, rating FROM sessions ORDER BY id")
            rows = cursor.fetchall()
        finally:
            conn.close()
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not load sessions: {e}") from e

    sessions = []
    for row in rows:
        try:
            emotion_data = json.loads(row[3]) if row[3] else None
        except (TypeError, json.JSONDecodeError) as e:
            logger.warning("Skipping session #%s: emotion_data is not valid JSON (%s)", row[0], e)
            continue

        record = {
            "id": row[0],
            "created_at": row[1],
            "name": row[2],
            "emotionData": emotion_data,
            "rating": row[4],
        }
        try:
            sessions.append(validate_record(record, ordinal=len(sessions) + 1))
        except MalformedRecordError as e:
            logger.warning("Skipping malformed session #%s: %s", row[0], e)

    return sessions


def delete_session_from_db(db_path, session_id):
    """Returns True if a row was deleted."""
    try:
        conn = sqlite3.connect(db_path)
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not delete session #{session_id}: {e}") from e


class SessionStore:
    """sqlite-backed store handed to EmotionDetector."""

    def __init__(self, db_path, create=True):
        self.db_path = db_path
        if create:
            init_db(db_path)

    def create(self, item):
        return save_session_to_db(self.db_path, item)

    def list_all(self):
        return load_sessions_from_db(self.db_path)

    def delete(self, session_id):
        return delete_session_from_db(self.db_path, session_id)

    def save(self, item):
        """Persist and return a copy carrying the assigned id."""
        return replace(item, id=self.create(item))

    def clear(self):
        return clear_sessions(self.db_path)
