import threading

import pytest

from mara.memory.expiring_store import ExpiringStore


def make_store(clock, ttl=10):
    return ExpiringStore(ttl, clock=clock)


def test_get_returns_value_before_deadline(clock):
    store = make_store(clock)
    store.set("a", 1)
    clock.advance(9.9)
    assert store.get("a") == 1


def test_entry_expires_lazily_on_read(clock):
    store = make_store(clock)
    store.set("a", 1)
    clock.advance(10)
    assert store.get("a") is None
    assert "a" not in store


def test_write_refreshes_ttl_but_read_does_not(clock):
    store = make_store(clock)
    store.set("a", 1)
    clock.advance(8)
    store.get("a")
    store.set("a", 2)
    clock.advance(8)
    assert store.get("a") == 2
    clock.advance(2)
    assert store.get("a") is None


def test_per_entry_ttl_override(clock):
    store = make_store(clock)
    store.set("short", 1, ttl_seconds=1)
    store.set("long", 2)
    clock.advance(2)
    assert store.get("short") is None
    assert store.get("long") == 2


def test_sweep_removes_only_expired(clock):
    store = make_store(clock)
    store.set("old", 1)
    clock.advance(5)
    store.set("new", 2)
    clock.advance(6)
    assert store.sweep() == 1
    assert list(store.keys()) == ["new"]
    assert len(store) == 1


def test_update_uses_default_for_missing_or_expired(clock):
    store = make_store(clock)
    assert store.update("n", lambda v: v + 1, default=0) == 1
    assert store.update("n", lambda v: v + 1, default=0) == 2
    clock.advance(11)
    assert store.update("n", lambda v: v + 1, default=0) == 1


def test_delete(clock):
    store = make_store(clock)
    store.set("a", 1)
    assert store.delete("a") is True
    assert store.delete("a") is False


def test_falsy_values_are_still_present(clock):
    store = make_store(clock)
    store.set("empty", [])
    assert store.contains("empty")


def test_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        ExpiringStore(0)


def test_concurrent_updates_do_not_lose_writes():
    store = ExpiringStore(60)

    def bump():
        for _ in range(500):
            store.update("counter", lambda v: v + 1, default=0)

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get("counter") == 4000
