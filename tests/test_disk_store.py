import asyncio
import os
import time

import pytest

from qrcache.cache.disk import DiskStore, cache_key

MAX_AGE = 60


@pytest.fixture
def store(tmp_path):
    disk = DiskStore(tmp_path / "images", max_size=250, max_age=MAX_AGE)
    yield disk
    disk.close()


def _age(path, seconds):
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


def test_file_names_are_sha256_of_url(tmp_path):
    disk = DiskStore(tmp_path)
    try:
        url = "https://cdn.example.com/qr/1.png"
        assert disk.path_for(url).name == cache_key(url) + ".img"
        assert len(cache_key(url)) == 64
        assert cache_key(url) != cache_key(url + "?v=2")
    finally:
        disk.close()


@pytest.mark.asyncio
async def test_put_then_get_round_trip(store):
    await store.put("https://a/1", b"payload")
    assert await store.get("https://a/1") == b"payload"
    assert await store.get("https://a/missing") is None


@pytest.mark.asyncio
async def test_last_write_wins_without_temp_leftovers(store):
    url = "https://a/1"
    await store.put(url, b"first")
    await store.put(url, b"second")
    assert await store.get(url) == b"second"
    assert [p.name for p in store.root.iterdir()] == [store.path_for(url).name]


@pytest.mark.asyncio
async def test_expired_file_is_absent_and_removed(store):
    url = "https://a/old"
    await store.put(url, b"x" * 10)
    path = store.path_for(url)
    _age(path, MAX_AGE + 1)

    assert await store.get(url) is None
    assert not path.exists()


@pytest.mark.asyncio
async def test_size_budget_evicts_oldest_first(store):
    await store.put("https://a/1", b"a" * 100)
    _age(store.path_for("https://a/1"), 30)
    await store.put("https://a/2", b"b" * 100)
    _age(store.path_for("https://a/2"), 20)
    await store.put("https://a/3", b"c" * 100)

    assert not store.path_for("https://a/1").exists()
    assert store.path_for("https://a/2").exists()
    assert store.path_for("https://a/3").exists()
    assert await store.total_size() <= 250


@pytest.mark.asyncio
async def test_newest_write_is_not_exempt_from_eviction(tmp_path):
    disk = DiskStore(tmp_path, max_size=150, max_age=MAX_AGE)
    try:
        await disk.put("https://a/small", b"s" * 100)
        _age(disk.path_for("https://a/small"), 10)
        await disk.put("https://a/large", b"L" * 200)

        assert await disk.entries() == []
    finally:
        disk.close()


@pytest.mark.asyncio
async def test_startup_sweep_removes_expired_files(tmp_path):
    root = tmp_path / "images"
    root.mkdir()
    stale = root / f"{cache_key('https://a/stale')}.img"
    fresh = root / f"{cache_key('https://a/fresh')}.img"
    stale.write_bytes(b"old")
    fresh.write_bytes(b"new")
    _age(stale, MAX_AGE + 5)

    disk = DiskStore(root, max_size=10_000, max_age=MAX_AGE)
    try:
        entries = await disk.entries()
        assert [os.path.basename(e.path) for e in entries] == [fresh.name]
        assert disk.startup_sweep.result() == 1
    finally:
        disk.close()


@pytest.mark.asyncio
async def test_remove_and_clear(store):
    await store.put("https://a/1", b"1")
    await store.put("https://a/2", b"2")
    await store.remove("https://a/1")
    assert await store.get("https://a/1") is None
    assert await store.clear() == 1
    assert await store.entries() == []


@pytest.mark.asyncio
async def test_unusable_directory_degrades_to_misses(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")
    disk = DiskStore(blocker)
    try:
        await disk.put("https://a/1", b"data")
        assert await disk.get("https://a/1") is None
        assert await disk.entries() == []
        assert await disk.check_cache_size() == 0
    finally:
        disk.close()


@pytest.mark.asyncio
async def test_concurrent_puts_stay_within_budget(store):
    urls = [f"https://a/burst-{i}" for i in range(40)]

    await asyncio.gather(*(store.put(url, bytes([i]) * 60) for i, url in enumerate(urls)))

    assert await store.total_size() <= store.max_size
    assert not [p.name for p in store.root.iterdir() if ".tmp." in p.name]
    for entry in await store.entries():
        assert entry.size_bytes == 60


@pytest.mark.asyncio
async def test_operations_run_one_at_a_time(store, monkeypatch):
    active = 0
    peak = 0
    original = DiskStore._put

    def tracking_put(self, url, data):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        try:
            time.sleep(0.005)
            return original(self, url, data)
        finally:
            active -= 1

    monkeypatch.setattr(DiskStore, "_put", tracking_put)
    await asyncio.gather(*(store.put(f"https://a/{i}", b"x") for i in range(10)))

    assert peak == 1
    assert len(await store.entries()) == 10
