"""Cloud Firestore adapter for the remote history collection."""
import logging
from typing import Callable, Iterable, Optional

import requests
from google.auth import credentials as auth_credentials
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore

from cda_anxiety.identity import FirebaseIdentity, IdentityError, IdentitySession

logger = logging.getLogger(__name__)

COLLECTION_NAME = "cda_tests"

Refresher = Callable[[IdentitySession], IdentitySession]


def collection_path(app_id: str, uid: str) -> tuple[str, ...]:
    return ("artifacts", app_id, "users", uid, COLLECTION_NAME)


class FirebaseUserCredentials(auth_credentials.Credentials):
    """Bearer credentials for a signed-in Firebase user.

    The client library calls refresh() once the ID token is close to
    expiry; the refresher swaps the user's refresh token for a new one.
    """

    def __init__(self, session: IdentitySession, refresher: Optional[Refresher] = None):
        super().__init__()
        self._refresher = refresher
        self._use(session)

    def _use(self, session: IdentitySession) -> None:
        self.session = session
        self.token = session.id_token
        self.expiry = session.expires_at

    def refresh(self, request) -> None:
        if self._refresher is None:
            raise auth_exceptions.RefreshError(f"ID token for {self.session.uid} cannot be refreshed")
        try:
            session = self._refresher(self.session)
        except (IdentityError, requests.RequestException) as e:
            logger.warning("Token refresh failed for %s: %s", self.session.uid, e)
            raise auth_exceptions.RefreshError(f"Could not refresh ID token: {e}") from e
        self._use(session)


class FirestoreCollection:
    def __init__(self, client, path: tuple[str, ...]):
        self.client = client
        self.path = path
        self.ref = client.collection(*path)

    def add(self, data: dict) -> str:
        payload = dict(data, date=firestore.SERVER_TIMESTAMP)
        _, doc_ref = self.ref.add(payload)
        return doc_ref.id

    def list_ids(self) -> list[str]:
        return [doc_ref.id for doc_ref in self.ref.list_documents()]

    def delete_many(self, ids: Iterable[str]) -> None:
        batch = self.client.batch()
        for doc_id in ids:
            batch.delete(self.ref.document(doc_id))
        batch.commit()

    def watch(self, on_change: Callable[[list[dict]], None]) -> Callable[[], None]:
        query = self.ref.order_by("date", direction=firestore.Query.DESCENDING)

        def on_snapshot(snapshots, changes, read_time):
            on_change([dict(snap.to_dict() or {}, id=snap.id) for snap in snapshots])

        watch = query.on_snapshot(on_snapshot)
        return watch.unsubscribe


def open_collection(firebase_config: dict, app_id: str, session: IdentitySession,
                    refresher: Optional[Refresher] = None) -> FirestoreCollection:
    """Open the signed-in user's history collection."""
    if refresher is None:
        refresher = FirebaseIdentity(firebase_config["apiKey"]).refresh
    client = firestore.Client(
        project=firebase_config["projectId"],
        credentials=FirebaseUserCredentials(session, refresher),
    )
    path = collection_path(app_id, session.uid)
    logger.debug("Opening Firestore collection %s", "/".join(path))
    return FirestoreCollection(client, path)
