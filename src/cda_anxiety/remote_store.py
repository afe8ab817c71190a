"""History log kept in a remote document collection."""
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol

from cda_anxiety.errors import PersistenceError
from cda_anxiety.models import Result
from cda_anxiety.observers import Listener

logger = logging.getLogger(__name__)


class DocumentCollection(Protocol):
    """Per-identity collection of result documents."""

    def add(self, data: dict) -> str:
        """Create a document, stamping `date` with the server clock. Returns its id."""

    def list_ids(self) -> list[str]:
        ...

    def delete_many(self, ids: Iterable[str]) -> None:
        """Delete all ids in a single batch commit."""

    def watch(self, on_change: Callable[[list[dict]], None]) -> Callable[[], None]:
        """Deliver every document (with its `id`), newest `date` first, on each change."""


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_date(value) -> str:
    # Pending server timestamps arrive as None in local snapshots.
    if value is None:
        return _utcnow_iso()
    if isinstance(value, str):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def documents_to_history(documents: list[dict]) -> list[Result]:
    history = []
    for doc in documents:
        data = dict(doc)
        data["date"] = normalize_date(data.get("date"))
        try:
            history.append(Result.from_dict(data))
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Skipping malformed history document %s: %s", doc.get("id"), e)
    return history


class RemoteHistoryStore:
    def __init__(self, collection: DocumentCollection, identity: str):
        self.collection = collection
        self.identity = identity

    def is_local_mode(self) -> bool:
        return False

    def current_identity(self) -> str:
        return self.identity

    def append(self, result: Result) -> Result:
        payload = result.to_dict()
        payload.pop("id", None)
        payload.pop("date", None)
        try:
            doc_id = self.collection.add(payload)
        except Exception as e:
            logger.error("Error saving result to remote history: %s", e)
            raise PersistenceError(f"Could not save result: {e}") from e
        logger.info("Saved result %s remotely for %s", doc_id, self.identity)
        return result.finalize(id=doc_id, date=_utcnow_iso())

    def clear_all(self) -> None:
        try:
            ids = self.collection.list_ids()
            if ids:
                self.collection.delete_many(ids)
        except Exception as e:
            logger.error("Error clearing remote history: %s", e)
            raise PersistenceError(f"Could not clear history: {e}") from e
        logger.info("Remote history cleared (%d documents)", len(ids))

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        stop = self.collection.watch(lambda docs: callback(documents_to_history(docs)))
        return _StopOnce(stop)


class _StopOnce:
    """Idempotent wrapper around a collection's stop function."""

    def __init__(self, stop: Callable[[], None]):
        self._stop = stop
        self._lock = threading.Lock()
        self.stopped = False

    def __call__(self) -> None:
        with self._lock:
            if self.stopped:
                return
            self.stopped = True
        self._stop()
