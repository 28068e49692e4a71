from qrcache.cache.memory import MemoryStore


def test_get_refreshes_recency():
    store = MemoryStore(byte_limit=300, count_limit=10)
    store.put("a", "A", 100)
    store.put("b", "B", 100)
    store.put("c", "C", 100)

    assert store.get("a") == "A"
    store.put("d", "D", 100)

    assert "b" not in store
    assert store.get("a") == "A"
    assert store.get("c") == "C"
    assert store.get("d") == "D"
    assert store.total_cost == 300


def test_byte_budget_never_exceeded():
    store = MemoryStore(byte_limit=1000, count_limit=100)
    for i in range(50):
        store.put(f"k{i}", i, 70 + i)
        assert store.total_cost <= 1000
    assert "k49" in store
    assert "k0" not in store


def test_count_budget_evicts_oldest():
    store = MemoryStore(byte_limit=10_000, count_limit=2)
    store.put("a", 1, 1)
    store.put("b", 2, 1)
    store.put("c", 3, 1)
    assert len(store) == 2
    assert "a" not in store


def test_oversized_entry_is_not_stored():
    store = MemoryStore(byte_limit=100, count_limit=10)
    store.put("small", "s", 10)
    assert store.put("huge", "h", 101) is False
    assert "huge" not in store
    assert store.get("small") == "s"
    assert store.total_cost == 10


def test_oversized_replacement_drops_previous_value():
    store = MemoryStore(byte_limit=100, count_limit=10)
    store.put("k", "old", 10)
    assert store.put("k", "new", 500) is False
    assert store.get("k") is None
    assert store.total_cost == 0


def test_overwrite_updates_cost():
    store = MemoryStore(byte_limit=100, count_limit=10)
    store.put("k", "v1", 60)
    store.put("k", "v2", 30)
    assert store.get("k") == "v2"
    assert store.total_cost == 30
    assert len(store) == 1


def test_remove_and_clear():
    store = MemoryStore(byte_limit=100, count_limit=10)
    store.put("a", 1, 10)
    store.put("b", 2, 20)
    assert store.remove("a") is True
    assert store.remove("a") is False
    assert store.total_cost == 20
    store.clear()
    assert len(store) == 0
    assert store.total_cost == 0
    assert store.get("b") is None
