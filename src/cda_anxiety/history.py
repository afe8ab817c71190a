"""History store that chooses between the local and the remote backend.

The store starts in local mode. When remote configuration is present it
moves to REMOTE_PENDING while the identity provider signs in and serves
every call from the local backend in the meantime. Once the user's remote
collection is open it switches to REMOTE_READY and re-points its
subscribers at the remote snapshots. Any failure along the way leaves the
store in LOCAL mode.

Consumers subscribe to the store itself, never to a backend, so the switch
is invisible to them apart from the new snapshot they receive.
"""
import logging
import threading
from enum import Enum
from functools import partial
from typing import Callable, Optional

from cda_anxiety.config import AppConfig
from cda_anxiety.identity import FirebaseIdentity, IdentityProvider, IdentitySession
from cda_anxiety.local_store import LocalHistoryStore
from cda_anxiety.models import Result
from cda_anxiety.observers import Listener, ObserverRegistry
from cda_anxiety.remote_store import DocumentCollection, RemoteHistoryStore

logger = logging.getLogger(__name__)

CollectionFactory = Callable[[IdentitySession], DocumentCollection]


class StoreMode(Enum):
    UNINITIALIZED = "uninitialized"
    LOCAL = "local"
    REMOTE_PENDING = "remote_pending"
    REMOTE_READY = "remote_ready"


class HistoryStore:
    def __init__(
        self,
        local: LocalHistoryStore,
        identity_provider: Optional[IdentityProvider] = None,
        collection_factory: Optional[CollectionFactory] = None,
    ):
        self.local = local
        self.remote: Optional[RemoteHistoryStore] = None
        self.mode = StoreMode.UNINITIALIZED
        self._identity_provider = identity_provider
        self._collection_factory = collection_factory
        self._lock = threading.RLock()
        self._listeners = ObserverRegistry()
        self._snapshot: list[Result] = []
        self._active = None
        self._detach: Optional[Callable[[], None]] = None

    # -- lifecycle --------------------------------------------------------

    def start(self) -> "HistoryStore":
        with self._lock:
            if self.mode is not StoreMode.UNINITIALIZED:
                return self
            self._attach(self.local)
            if self._identity_provider is None or self._collection_factory is None:
                self.mode = StoreMode.LOCAL
                logger.info("History store running in local mode")
                return self
            self.mode = StoreMode.REMOTE_PENDING
        logger.info("History store waiting for sign-in")
        try:
            self._identity_provider.sign_in(self._on_identity_ready, self._on_identity_failed)
        except Exception as e:
            self._on_identity_failed(e)
        return self

    def close(self) -> None:
        with self._lock:
            if self._detach is not None:
                self._detach()
                self._detach = None
            self._active = None
            self._listeners = ObserverRegistry()

    def _attach(self, backend) -> None:
        previous = self._detach
        self._active = backend
        self._detach = backend.subscribe(partial(self._on_snapshot, backend))
        if previous is not None:
            previous()

    def _on_snapshot(self, source, history: list[Result]) -> None:
        with self._lock:
            if source is not self._active:
                return
            self._snapshot = list(history)
            listeners = self._listeners
            version = listeners.next_version()
        listeners.notify(history, version)

    def _on_identity_ready(self, session: IdentitySession) -> None:
        try:
            remote = RemoteHistoryStore(self._collection_factory(session), session.uid)
        except Exception as e:
            logger.warning("Remote history unavailable, falling back to local mode: %s", e)
            self._degrade()
            return
        with self._lock:
            if self.mode is not StoreMode.REMOTE_PENDING:
                return
            try:
                self._attach(remote)
            except Exception as e:
                logger.warning("Subscription failed, falling back to local mode: %s", e)
                self._active = self.local
                self.mode = StoreMode.LOCAL
                return
            self.remote = remote
            self.mode = StoreMode.REMOTE_READY
        logger.info("History store connected for %s", session.uid)

    def _on_identity_failed(self, error: Exception) -> None:
        logger.warning("Sign-in failed, falling back to local mode: %s", error)
        self._degrade()

    def _degrade(self) -> None:
        with self._lock:
            if self.mode is StoreMode.REMOTE_PENDING:
                self.mode = StoreMode.LOCAL

    def _backend(self):
        self.start()
        with self._lock:
            if self.mode is StoreMode.REMOTE_READY and self.remote is not None:
                return self.remote
            return self.local

    # -- operations -------------------------------------------------------

    def append(self, result: Result) -> Result:
        return self._backend().append(result)

    def clear_all(self) -> None:
        self._backend().clear_all()

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Deliver the current log now and again after every change."""
        self.start()
        with self._lock:
            listeners = self._listeners
        return listeners.add(callback, self.history)

    def history(self) -> list[Result]:
        self.start()
        with self._lock:
            return list(self._snapshot)

    def current_identity(self) -> str:
        return self._backend().current_identity()

    def is_local_mode(self) -> bool:
        return self._backend().is_local_mode()

    def is_offline(self) -> bool:
        """True when no remote backend is configured or it could not be reached."""
        return self.mode in (StoreMode.UNINITIALIZED, StoreMode.LOCAL)


def open_history_store(config: AppConfig) -> HistoryStore:
    local = LocalHistoryStore(config.db_path)
    if not config.remote_enabled:
        return HistoryStore(local).start()

    try:
        from cda_anxiety.firestore import open_collection
    except ImportError as e:
        logger.warning("Remote history needs the 'remote' extra, running in local mode: %s", e)
        return HistoryStore(local).start()

    identity = FirebaseIdentity(config.firebase["apiKey"], custom_token=config.auth_token)
    factory = partial(open_collection, config.firebase, config.app_id, refresher=identity.refresh)
    return HistoryStore(local, identity, factory).start()
