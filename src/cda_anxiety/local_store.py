"""History log persisted as a single JSON blob in the local database."""
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Callable

from cda_anxiety.db import init_db, read_value, write_value
from cda_anxiety.errors import PersistenceError
from cda_anxiety.models import Result
from cda_anxiety.observers import Listener, ObserverRegistry

logger = logging.getLogger(__name__)

LOCAL_STORAGE_KEY = "cda_local_history"
OFFLINE_IDENTITY = "offline-user"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalHistoryStore:
    """Single-process history log, newest first.

    append and clear_all share one lock so a clear issued right after an
    append always wins.
    """

    def __init__(self, db_path: str, clock: Callable[[], datetime] = _utcnow):
        self.db_path = db_path
        self._clock = clock
        self._lock = threading.Lock()
        self._listeners = ObserverRegistry()
        init_db(db_path)

    def is_local_mode(self) -> bool:
        return True

    def current_identity(self) -> str:
        return OFFLINE_IDENTITY

    def history(self) -> list[Result]:
        try:
            saved = read_value(self.db_path, LOCAL_STORAGE_KEY)
        except sqlite3.Error as e:
            logger.warning("Local history unreadable, treating as empty: %s", e)
            return []
        if not saved:
            return []
        try:
            records = json.loads(saved)
            if not isinstance(records, list):
                raise TypeError(f"expected a list, got {type(records).__name__}")
            return [Result.from_dict(r) for r in records]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Local history corrupt, treating as empty: %s", e)
            return []

    def _write(self, history: list[Result]) -> None:
        blob = json.dumps([r.to_dict() for r in history])
        try:
            write_value(self.db_path, LOCAL_STORAGE_KEY, blob)
        except sqlite3.Error as e:
            logger.error("Error writing local history: %s", e)
            raise PersistenceError(f"Could not write local history: {e}") from e

    def _next_id(self, now: datetime, current: list[Result]) -> int:
        new_id = int(now.timestamp() * 1000)
        if current and isinstance(current[0].id, int):
            new_id = max(new_id, current[0].id + 1)
        return new_id

    def append(self, result: Result) -> Result:
        with self._lock:
            now = self._clock()
            current = self.history()
            saved = result.finalize(id=self._next_id(now, current), date=now.isoformat())
            self._write([saved] + current)
        logger.info("Saved result %s locally (total=%d)", saved.id, saved.total_score)
        self._notify()
        return saved

    def clear_all(self) -> None:
        with self._lock:
            self._write([])
        logger.info("Local history cleared")
        self._notify()

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        return self._listeners.add(callback, self.history)

    def _notify(self) -> None:
        # Versioned after the write, read after versioning.
        version = self._listeners.next_version()
        self._listeners.notify(self.history(), version)
