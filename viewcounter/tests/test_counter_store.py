import json
import os
import threading

import pytest

from viewcounter.constants import MAX_COUNT
from viewcounter.counter_store import CounterStore, record_filename
from viewcounter.exceptions import InvalidKey, StoreUnavailable


@pytest.fixture
def store(data_dir):
    with CounterStore(data_dir) as s:
        yield s


def test_first_call_returns_one_then_increments_by_one(store):
    assert [store.increment_and_get("alice") for _ in range(5)] == [1, 2, 3, 4, 5]


def test_keys_are_independent(store):
    store.increment_and_get("alice")
    store.increment_and_get("alice")
    assert store.increment_and_get("bob") == 1
    assert store.get("alice") == 2
    assert store.get("bob") == 1
    assert store.get("carol") == 0


@pytest.mark.parametrize("key", ["", "a/b", "has space", "tab\there", "nl\n", "x" * 129, None, 42])
def test_invalid_keys_rejected_without_touching_storage(store, key):
    with pytest.raises(InvalidKey):
        store.increment_and_get(key)
    assert os.listdir(os.path.join(store.data_dir, "counts")) == []


def test_unicode_key_accepted(store):
    assert store.increment_and_get("zoë") == 1


def test_concurrent_increments_are_linearizable(store):
    start = store.increment_and_get("alice")
    n = 50
    results = []
    results_lock = threading.Lock()
    barrier = threading.Barrier(n)

    def worker():
        barrier.wait()
        v = store.increment_and_get("alice")
        with results_lock:
            results.append(v)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == list(range(start + 1, start + n + 1))
    assert store.get("alice") == start + n


def test_restart_reloads_last_acknowledged_count(data_dir):
    with CounterStore(data_dir) as s1:
        for _ in range(3):
            v = s1.increment_and_get("alice")
    assert v == 3
    with CounterStore(data_dir) as s2:
        assert s2.get("alice") == 3
        assert s2.increment_and_get("alice") == v + 1


def test_record_layout_on_disk(store):
    store.increment_and_get("alice")
    path = os.path.join(store.data_dir, "counts", record_filename("alice"))
    with open(path, "r", encoding="utf-8") as fh:
        record = json.load(fh)
    assert record["key"] == "alice"
    assert record["count"] == 1
    assert record["updated_at"].endswith("Z")
    # no temp files left behind
    assert os.listdir(os.path.dirname(path)) == [record_filename("alice")]


def test_persist_failure_leaves_count_unchanged(store, monkeypatch):
    store.increment_and_get("alice")

    def boom(key, count):
        raise OSError("disk full")

    monkeypatch.setattr(store, "_persist", boom)
    with pytest.raises(StoreUnavailable) as exc:
        store.increment_and_get("alice")
    assert exc.value.operation == "persist"
    assert store.get("alice") == 1

    monkeypatch.undo()
    assert store.increment_and_get("alice") == 2


def test_lock_timeout_raises_store_unavailable(data_dir):
    with CounterStore(data_dir, timeout=0.05) as s:
        lock = s._lock_for("alice")
        lock.acquire()
        try:
            with pytest.raises(StoreUnavailable) as exc:
                s.increment_and_get("alice")
            assert exc.value.operation == "lock"
            # unrelated keys are not blocked
            assert s.increment_and_get("bob") == 1
        finally:
            lock.release()
        assert s.get("alice") == 0


def test_overflow_raises_and_keeps_count(store):
    store._counts["alice"] = MAX_COUNT
    with pytest.raises(StoreUnavailable):
        store.increment_and_get("alice")
    assert store.get("alice") == MAX_COUNT


def test_unreadable_records_skipped_on_open(data_dir):
    with CounterStore(data_dir) as s:
        s.increment_and_get("alice")
    counts_dir = os.path.join(data_dir, "counts")
    with open(os.path.join(counts_dir, "garbage.json"), "w", encoding="utf-8") as fh:
        fh.write("{not json")
    with CounterStore(data_dir) as s2:
        assert s2.snapshot() == {"alice": 1}


def test_increment_on_closed_store_raises(data_dir):
    s = CounterStore(data_dir)
    with pytest.raises(StoreUnavailable):
        s.increment_and_get("alice")


def _counts_dir(store):
    return os.path.join(store.data_dir, "counts")


def test_failed_rename_cleans_temp_file_and_keeps_count(store, monkeypatch):
    store.increment_and_get("alice")

    def failing_replace(src, dst):
        raise OSError("rename failed")

    monkeypatch.setattr("viewcounter.counter_store.os.replace", failing_replace)
    with pytest.raises(StoreUnavailable) as exc:
        store.increment_and_get("alice")
    assert exc.value.operation == "persist"
    assert store.get("alice") == 1
    assert os.listdir(_counts_dir(store)) == [record_filename("alice")]

    monkeypatch.undo()
    assert store.increment_and_get("alice") == 2


def test_failed_file_fsync_cleans_temp_file(store, monkeypatch):
    def failing_fsync(fd):
        raise OSError("fsync failed")

    monkeypatch.setattr("viewcounter.counter_store.os.fsync", failing_fsync)
    with pytest.raises(StoreUnavailable) as exc:
        store.increment_and_get("alice")
    assert exc.value.operation == "persist"
    assert store.get("alice") == 0
    assert os.listdir(_counts_dir(store)) == []


def test_failed_directory_fsync_is_not_acknowledged(data_dir, monkeypatch):
    with CounterStore(data_dir) as s:
        s.increment_and_get("alice")

        def failing_fsync_dir(path):
            raise OSError("directory fsync failed")

        monkeypatch.setattr("viewcounter.counter_store._fsync_dir", failing_fsync_dir)
        with pytest.raises(StoreUnavailable) as exc:
            s.increment_and_get("alice")
        assert exc.value.operation == "persist"
        assert s.get("alice") == 1
        assert not [n for n in os.listdir(_counts_dir(s)) if n.startswith(".tmp-")]

        # The rename already landed: the record holds the unacknowledged 2.
        with open(os.path.join(_counts_dir(s), record_filename("alice")), encoding="utf-8") as fh:
            on_disk = json.load(fh)["count"]
        assert on_disk == 2

        monkeypatch.undo()
        assert s.increment_and_get("alice") == on_disk

    with CounterStore(data_dir) as reopened:
        assert reopened.get("alice") == on_disk
