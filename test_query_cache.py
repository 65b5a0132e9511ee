import threading
import time

import pytest

from services.query_cache import QueryCache, QueryKeys

stops = QueryKeys("stops")


class FakeTimer:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_fetch_loads_once_and_returns_cached_value():
    cache = QueryCache()
    calls = []

    def loader():
        calls.append(1)
        return ["tokyo"]

    assert cache.fetch(stops.list("it-1"), loader) == ["tokyo"]
    assert cache.fetch(stops.list("it-1"), loader) == ["tokyo"]
    assert len(calls) == 1


def test_entries_go_stale():
    timer = FakeTimer()
    cache = QueryCache(stale_seconds=300, timer=timer)
    cache.set(stops.list("it-1"), ["tokyo"])
    timer.now = 299
    assert cache.get(stops.list("it-1")) == ["tokyo"]
    timer.now = 301
    assert cache.get(stops.list("it-1")) is None


def test_invalidate_by_prefix():
    cache = QueryCache()
    cache.set(stops.list("it-1"), [1])
    cache.set(stops.list("it-2"), [2])
    cache.set(stops.detail("s-1"), {"id": "s-1"})
    cache.set(("activities", "list", "it-1"), [3])

    dropped = cache.invalidate(stops.lists())

    assert set(dropped) == {stops.list("it-1"), stops.list("it-2")}
    assert cache.get(stops.detail("s-1")) == {"id": "s-1"}
    assert cache.get(("activities", "list", "it-1")) == [3]

    cache.invalidate(stops.all())
    assert cache.get(stops.detail("s-1")) is None


def test_subscribers_are_notified_on_overlapping_prefixes():
    cache = QueryCache()
    seen = []
    unsubscribe = cache.subscribe(stops.list("it-1"), seen.append)

    cache.invalidate(stops.all())
    cache.remove(stops.list("it-1"))
    cache.invalidate(stops.list("it-2"))
    cache.invalidate(("activities",))

    assert seen == [stops.all(), stops.list("it-1")]

    unsubscribe()
    cache.invalidate(stops.all())
    assert len(seen) == 2


def test_retry_then_success():
    cache = QueryCache()
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("connection reset")
        return ["ok"]

    assert cache.fetch(stops.list("it-1"), flaky, retry=1, retry_delay=0) == ["ok"]
    assert len(attempts) == 2


def test_failed_load_is_not_cached():
    cache = QueryCache()

    def broken():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        cache.fetch(stops.list("it-1"), broken, retry=1, retry_delay=0)
    assert cache.get(stops.list("it-1")) is None
    assert stops.list("it-1") not in cache._key_locks
    assert cache.fetch(stops.list("it-1"), lambda: ["back"]) == ["back"]


def test_concurrent_fetches_share_one_load():
    cache = QueryCache()
    calls = []
    release = threading.Event()

    def slow():
        calls.append(1)
        release.wait(timeout=5)
        return ["tokyo"]

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(cache.fetch(stops.list("it-1"), slow)))
        for _ in range(5)
    ]
    for t in threads:
        t.start()
    time.sleep(0.1)
    release.set()
    for t in threads:
        t.join(timeout=5)

    assert results == [["tokyo"]] * 5
    assert len(calls) == 1


def test_load_overtaken_by_invalidation_is_not_stored():
    cache = QueryCache()
    started = threading.Event()
    release = threading.Event()

    def slow():
        started.set()
        release.wait(timeout=5)
        return ["before edit"]

    results = []
    t = threading.Thread(target=lambda: results.append(cache.fetch(stops.list("it-1"), slow)))
    t.start()
    assert started.wait(timeout=5)
    cache.invalidate(stops.list("it-1"))
    release.set()
    t.join(timeout=5)

    assert results == [["before edit"]]
    assert cache.get(stops.list("it-1")) is None
    assert cache.fetch(stops.list("it-1"), lambda: ["after edit"]) == ["after edit"]


def test_load_does_not_overwrite_a_newer_set():
    cache = QueryCache()
    started = threading.Event()
    release = threading.Event()

    def slow():
        started.set()
        release.wait(timeout=5)
        return {"title": "old"}

    t = threading.Thread(target=lambda: cache.fetch(stops.detail("s-1"), slow))
    t.start()
    assert started.wait(timeout=5)
    cache.set(stops.detail("s-1"), {"title": "new"})
    release.set()
    t.join(timeout=5)

    assert cache.get(stops.detail("s-1")) == {"title": "new"}


def test_key_locks_do_not_accumulate():
    cache = QueryCache()

    def broken():
        raise RuntimeError("down")

    for i in range(10):
        with pytest.raises(RuntimeError):
            cache.fetch(stops.list(f"it-{i}"), broken)
    cache.fetch(stops.list("it-ok"), lambda: [])

    assert cache._key_locks == {}
