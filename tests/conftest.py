import itertools

import pytest

from cda_anxiety.identity import IdentitySession
from cda_anxiety.local_store import LocalHistoryStore


class FakeCollection:
    """In-memory document collection that pushes snapshots synchronously."""

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self.watchers: list = []
        self.fail_add = False
        self.fail_delete = False
        self.batches: list[list[str]] = []
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    def _ordered(self) -> list[dict]:
        docs = [dict(data, id=doc_id) for doc_id, data in self.docs.items()]
        return sorted(docs, key=lambda d: d["date"], reverse=True)

    def _push(self) -> None:
        for watcher in list(self.watchers):
            watcher(self._ordered())

    def add(self, data: dict) -> str:
        if self.fail_add:
            raise ConnectionError("backend unavailable")
        doc_id = f"doc{next(self._ids)}"
        self.docs[doc_id] = dict(data, date=f"2024-01-01T00:00:{next(self._clock):02d}+00:00")
        self._push()
        return doc_id

    def list_ids(self) -> list[str]:
        return list(self.docs)

    def delete_many(self, ids) -> None:
        if self.fail_delete:
            raise PermissionError("permission denied")
        ids = list(ids)
        self.batches.append(ids)
        for doc_id in ids:
            self.docs.pop(doc_id, None)
        self._push()

    def watch(self, on_change):
        self.watchers.append(on_change)
        on_change(self._ordered())
        return lambda: self.watchers.remove(on_change)


class DeferredIdentity:
    """Identity provider whose sign-in completes only when the test says so."""

    def __init__(self):
        self.on_ready = None
        self.on_error = None

    def sign_in(self, on_ready, on_error) -> None:
        self.on_ready = on_ready
        self.on_error = on_error

    def complete(self, uid: str = "user-123") -> None:
        self.on_ready(IdentitySession(uid=uid, id_token="token"))

    def fail(self, error: Exception | None = None) -> None:
        self.on_error(error or RuntimeError("sign-in refused"))

    def refresh(self, session: IdentitySession) -> IdentitySession:
        return IdentitySession(uid=session.uid, id_token=session.id_token + "-refreshed")


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    return str(tmp_path / "test_history.db")


@pytest.fixture
def local_store(tmp_db):
    return LocalHistoryStore(tmp_db)


@pytest.fixture
def fake_collection():
    return FakeCollection()


@pytest.fixture
def deferred_identity():
    return DeferredIdentity()
