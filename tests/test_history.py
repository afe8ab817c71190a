# tests/test_history.py
from unittest.mock import patch

import pytest

from cda_anxiety.config import AppConfig
from cda_anxiety.errors import PersistenceError
from cda_anxiety.history import HistoryStore, StoreMode, open_history_store
from cda_anxiety.local_store import OFFLINE_IDENTITY
from cda_anxiety.scoring import score


@pytest.fixture
def pending_store(local_store, deferred_identity, fake_collection):
    return HistoryStore(local_store, deferred_identity, lambda session: fake_collection).start()


def test_no_remote_config_is_local_mode(tmp_db):
    store = open_history_store(AppConfig(db_path=tmp_db))
    assert store.mode is StoreMode.LOCAL
    assert store.is_local_mode()
    assert store.is_offline()
    assert store.current_identity() == OFFLINE_IDENTITY


def test_local_append_is_retrievable_via_subscribe(tmp_db):
    store = open_history_store(AppConfig(db_path=tmp_db))
    saved = store.append(score({0: 3}))
    received = []
    store.subscribe(received.append)
    assert [h.id for h in received[0]] == [saved.id]


def test_local_ordering_newest_first(local_store):
    store = HistoryStore(local_store).start()
    r1 = store.append(score({0: 1}))
    r2 = store.append(score({0: 2}))
    assert [h.id for h in store.history()] == [r2.id, r1.id]


def test_append_clear_subscribe_delivers_empty(local_store):
    store = HistoryStore(local_store).start()
    store.append(score({0: 3}))
    store.clear_all()
    received = []
    store.subscribe(received.append)
    assert received == [[]]


def test_clear_all_twice(local_store):
    store = HistoryStore(local_store).start()
    store.append(score({}))
    store.clear_all()
    store.clear_all()
    assert store.history() == []


def test_subscribers_notified_in_registration_order(local_store):
    calls = []
    store = HistoryStore(local_store).start()
    store.subscribe(lambda h: calls.append(("a", len(h))))
    store.subscribe(lambda h: calls.append(("b", len(h))))
    calls.clear()
    store.append(score({}))
    assert calls == [("a", 1), ("b", 1)]


def test_unsubscribe_stops_only_that_listener(local_store):
    a, b = [], []
    store = HistoryStore(local_store).start()
    unsub = store.subscribe(a.append)
    store.subscribe(b.append)
    unsub()
    unsub()
    store.append(score({}))
    assert len(a) == 1
    assert len(b) == 2


def test_operations_before_start_start_the_store(local_store):
    store = HistoryStore(local_store)
    assert store.mode is StoreMode.UNINITIALIZED
    store.append(score({}))
    assert store.mode is StoreMode.LOCAL
    assert len(store.history()) == 1


def test_start_is_idempotent(local_store, deferred_identity, fake_collection):
    store = HistoryStore(local_store, deferred_identity, lambda s: fake_collection)
    store.start()
    first_callback = deferred_identity.on_ready
    store.start()
    assert deferred_identity.on_ready is first_callback


def test_pending_identity_behaves_as_local(pending_store, fake_collection):
    assert pending_store.mode is StoreMode.REMOTE_PENDING
    assert pending_store.is_local_mode()
    assert not pending_store.is_offline()
    assert pending_store.current_identity() == OFFLINE_IDENTITY
    saved = pending_store.append(score({0: 1}))
    assert isinstance(saved.id, int)
    assert fake_collection.docs == {}
    assert len(pending_store.history()) == 1


def test_identity_ready_switches_to_remote(pending_store, deferred_identity, fake_collection):
    deferred_identity.complete("user-42")
    assert pending_store.mode is StoreMode.REMOTE_READY
    assert not pending_store.is_local_mode()
    assert pending_store.current_identity() == "user-42"
    saved = pending_store.append(score({0: 2}))
    assert saved.id in fake_collection.docs


def test_subscribers_follow_switch_to_remote(pending_store, deferred_identity):
    pending_store.append(score({0: 1}))
    received = []
    pending_store.subscribe(received.append)
    assert len(received[-1]) == 1  # local entry while pending

    deferred_identity.complete()
    assert received[-1] == []  # remote log for the new identity

    pending_store.append(score({0: 3}))
    assert [h.total_score for h in received[-1]] == [3]


def test_local_changes_ignored_after_switch(pending_store, deferred_identity, local_store):
    received = []
    pending_store.subscribe(received.append)
    deferred_identity.complete()
    count = len(received)
    local_store.append(score({}))
    assert len(received) == count


def test_remote_append_then_subscribe_includes_result(pending_store, deferred_identity):
    deferred_identity.complete()
    saved = pending_store.append(score({1: 2}))
    received = []
    pending_store.subscribe(received.append)
    assert saved.id in [h.id for h in received[0]]


def test_remote_append_failure_propagates(pending_store, deferred_identity, fake_collection):
    deferred_identity.complete()
    fake_collection.fail_add = True
    with pytest.raises(PersistenceError):
        pending_store.append(score({}))
    assert pending_store.history() == []


def test_remote_clear_failure_propagates(pending_store, deferred_identity, fake_collection):
    deferred_identity.complete()
    pending_store.append(score({}))
    fake_collection.fail_delete = True
    with pytest.raises(PersistenceError):
        pending_store.clear_all()
    assert len(pending_store.history()) == 1


def test_remote_clear_all(pending_store, deferred_identity):
    deferred_identity.complete()
    pending_store.append(score({}))
    pending_store.clear_all()
    pending_store.clear_all()
    assert pending_store.history() == []


def test_sign_in_failure_degrades_to_local(pending_store, deferred_identity):
    deferred_identity.fail()
    assert pending_store.mode is StoreMode.LOCAL
    assert pending_store.is_offline()
    assert pending_store.is_local_mode()
    pending_store.append(score({}))
    assert len(pending_store.history()) == 1


def test_late_identity_after_failure_is_ignored(pending_store, deferred_identity):
    deferred_identity.fail()
    deferred_identity.complete()
    assert pending_store.mode is StoreMode.LOCAL


def test_collection_factory_failure_degrades_to_local(local_store, deferred_identity):
    def broken_factory(session):
        raise RuntimeError("no client")

    store = HistoryStore(local_store, deferred_identity, broken_factory).start()
    deferred_identity.complete()
    assert store.mode is StoreMode.LOCAL
    assert store.is_local_mode()


def test_watch_failure_degrades_to_local(local_store, deferred_identity, fake_collection):
    def broken_watch(on_change):
        raise RuntimeError("listen refused")

    fake_collection.watch = broken_watch
    store = HistoryStore(local_store, deferred_identity, lambda s: fake_collection).start()
    received = []
    store.subscribe(received.append)
    deferred_identity.complete()
    assert store.mode is StoreMode.LOCAL
    store.append(score({}))
    assert len(received[-1]) == 1


def test_provider_raising_on_sign_in_degrades(local_store, fake_collection):
    class ExplodingIdentity:
        def sign_in(self, on_ready, on_error):
            raise RuntimeError("misconfigured")

    store = HistoryStore(local_store, ExplodingIdentity(), lambda s: fake_collection).start()
    assert store.mode is StoreMode.LOCAL


def test_close_releases_subscriptions(local_store):
    store = HistoryStore(local_store).start()
    received = []
    store.subscribe(received.append)
    store.close()
    local_store.append(score({}))
    assert len(received) == 1


def test_listener_appending_on_first_delivery_sees_its_entry(local_store):
    store = HistoryStore(local_store).start()
    received = []

    def listener(history):
        received.append(history)
        if len(received) == 1:
            store.append(score({0: 2}))

    store.subscribe(listener)
    assert [len(h) for h in received] == [0, 1]
    assert store.history() == received[-1]


def test_remote_listener_appending_on_first_delivery_sees_its_entry(pending_store, deferred_identity):
    deferred_identity.complete()
    received = []

    def listener(history):
        received.append(history)
        if len(received) == 1:
            pending_store.append(score({0: 2}))

    pending_store.subscribe(listener)
    assert [len(h) for h in received] == [0, 1]


def test_listener_cannot_mutate_shared_block_scores(local_store):
    store = HistoryStore(local_store).start()
    store.append(score({0: 3}))
    errors, seen = [], []

    def meddler(history):
        try:
            history[0].block_scores["B1"] = 99
        except TypeError as e:
            errors.append(e)

    store.subscribe(meddler)
    store.subscribe(lambda h: seen.append(h[0].block_scores["B1"]))
    assert len(errors) == 1
    assert seen == [3]
    assert store.history()[0].block_scores["B1"] == 3


def test_remote_config_wires_identity_and_collection(tmp_db, deferred_identity, fake_collection):
    firebase = {"apiKey": "key", "projectId": "proj"}
    config = AppConfig(db_path=tmp_db, firebase=firebase, app_id="app-1", auth_token="ct")
    with patch("cda_anxiety.history.FirebaseIdentity", return_value=deferred_identity) as identity_cls, \
            patch("cda_anxiety.firestore.open_collection", return_value=fake_collection) as opener:
        store = open_history_store(config)
        identity_cls.assert_called_once_with("key", custom_token="ct")
        assert store.mode is StoreMode.REMOTE_PENDING
        assert not store.is_offline()

        deferred_identity.complete("user-9")

    assert store.mode is StoreMode.REMOTE_READY
    assert store.current_identity() == "user-9"
    firebase_arg, app_id_arg, session_arg = opener.call_args.args
    assert firebase_arg is firebase
    assert app_id_arg == "app-1"
    assert session_arg.uid == "user-9"
    assert opener.call_args.kwargs["refresher"] == deferred_identity.refresh
    saved = store.append(score({0: 1}))
    assert saved.id in fake_collection.docs


def test_remote_config_without_remote_libraries_runs_local(tmp_db):
    config = AppConfig(db_path=tmp_db, firebase={"apiKey": "key", "projectId": "proj"})
    with patch.dict("sys.modules", {"cda_anxiety.firestore": None}):
        store = open_history_store(config)
    assert store.mode is StoreMode.LOCAL
