# tests/test_cache.py
# PURPOSE: unit tests for the cache store, key derivation and invalidation policy.

from taskhub.cache import (
    MemoryCacheStore,
    invalidate_task_lists,
    read_through,
    task_list_cache_key,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    store = MemoryCacheStore(clock=clock)
    store.set("k", [1, 2], ttl=60)
    assert store.get("k") == [1, 2]

    clock.now += 59
    assert store.get("k") == [1, 2]
    clock.now += 1
    assert store.get("k") is None


def test_write_sweeps_expired_entries_never_read_again():
    clock = FakeClock()
    store = MemoryCacheStore(clock=clock)
    for i in range(100):
        read_through(store, task_list_cache_key(1, search=f"term {i}"), 60, lambda: [])
    assert len(store.keys()) == 100

    clock.now += 61
    store.set("fresh", ["x"], ttl=60)
    assert store.keys() == ["fresh"]


def test_store_returns_copies():
    store = MemoryCacheStore()
    value = [{"id": 1}]
    store.set("k", value, ttl=60)
    value[0]["id"] = 99
    got = store.get("k")
    got.append("mutated")
    assert store.get("k") == [{"id": 1}]


def test_read_through_loads_once():
    store = MemoryCacheStore()
    calls = []

    def loader():
        calls.append(1)
        return ["a"]

    assert read_through(store, "k", 60, loader) == ["a"]
    assert read_through(store, "k", 60, loader) == ["a"]
    assert len(calls) == 1


def test_read_through_does_not_cache_none():
    store = MemoryCacheStore()
    calls = []

    def loader():
        calls.append(1)
        return None

    read_through(store, "k", 60, loader)
    read_through(store, "k", 60, loader)
    assert len(calls) == 2
    assert store.keys() == []


def test_cache_keys_are_deterministic_and_distinct():
    assert task_list_cache_key(1, "pending", "milk") == task_list_cache_key(1, "pending", "milk")
    assert task_list_cache_key(1, None, None) == task_list_cache_key(1, "all", "")
    assert task_list_cache_key(1, None, "milk") != task_list_cache_key(1, None, "eggs")
    assert task_list_cache_key(1, "pending") != task_list_cache_key(2, "pending")
    assert task_list_cache_key(1, None, None).startswith("user_1_tasks_all_search_")


def test_invalidate_task_lists_covers_search_keys_of_one_user():
    store = MemoryCacheStore()
    own = [
        task_list_cache_key(1, None),
        task_list_cache_key(1, "completed"),
        task_list_cache_key(1, "pending", "milk"),
    ]
    other = task_list_cache_key(12, None)  # shares the "user_1" text prefix
    for key in own + [other]:
        store.set(key, [], ttl=3600)

    invalidate_task_lists(store, 1)
    assert store.keys() == [other]
