# tests/test_integration.py
"""End-to-end test of the assessment workflow."""
from cda_anxiety.config import load_config
from cda_anxiety.history import HistoryStore, StoreMode, open_history_store
from cda_anxiety.local_store import LocalHistoryStore
from cda_anxiety.scoring import score


def test_offline_assessment_workflow(tmp_db):
    store = open_history_store(load_config({"CDA_DB_PATH": tmp_db}))
    assert store.is_local_mode()

    snapshots = []
    unsubscribe = store.subscribe(snapshots.append)
    assert snapshots == [[]]

    low = store.append(score({i: 0 for i in range(25)}))
    high = store.append(score({i: 3 for i in range(25)}))
    assert [h.id for h in snapshots[-1]] == [high.id, low.id]
    assert snapshots[-1][0].level == "Severe anxiety"
    assert snapshots[-1][1].level == "Low anxiety"

    # History survives a restart
    reopened = open_history_store(load_config({"CDA_DB_PATH": tmp_db}))
    assert [h.id for h in reopened.history()] == [high.id, low.id]

    store.clear_all()
    assert snapshots[-1] == []
    unsubscribe()


def test_remote_workflow_after_sign_in(tmp_db, deferred_identity, fake_collection):
    store = HistoryStore(LocalHistoryStore(tmp_db), deferred_identity, lambda s: fake_collection).start()
    snapshots = []
    store.subscribe(snapshots.append)

    offline = store.append(score({0: 1}))
    assert isinstance(offline.id, int)

    deferred_identity.complete("user-1")
    assert store.mode is StoreMode.REMOTE_READY
    saved = store.append(score({i: 2 for i in range(10)}))
    assert snapshots[-1][0].id == saved.id
    assert snapshots[-1][0].total_score == 20

    store.clear_all()
    assert snapshots[-1] == []
    # The local entry written while pending stays in the local log
    assert [h.id for h in store.local.history()] == [offline.id]
