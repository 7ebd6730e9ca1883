from __future__ import annotations

import os
from pathlib import Path

from elementaryCA.starred import StarredConfigStore
from elementaryCA.storage import JsonFileStorage, MemoryStorage


def test_memory_storage_notifies_all_subscribers() -> None:
    storage = MemoryStorage()
    a, b = [], []
    storage.subscribe(a.append)
    unsubscribe = storage.subscribe(b.append)
    storage.set_item("k", "v")
    unsubscribe()
    storage.remove_item("k")
    storage.remove_item("missing")
    assert storage.get_item("k") is None
    assert a == ["k", "k"]
    assert b == ["k"]


def test_file_storage_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "store.json"
    storage = JsonFileStorage(path)
    assert storage.get_item("k") is None
    storage.set_item("k", "v")
    assert JsonFileStorage(path).get_item("k") == "v"
    storage.remove_item("k")
    assert storage.get_item("k") is None


def test_file_storage_corrupt_file_reads_empty(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    storage = JsonFileStorage(path)
    assert storage.get_item("k") is None
    storage.set_item("k", "v")
    assert storage.get_item("k") == "v"


def test_file_storage_undecodable_file_reads_empty(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_bytes(b'{"rule22.starredConfigs.v1": "\xff\xfe"}')
    storage = JsonFileStorage(path)
    assert storage.get_item("rule22.starredConfigs.v1") is None
    assert StarredConfigStore(storage).items == []


def test_file_storage_poll_detects_external_writes(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    mine = JsonFileStorage(path)
    other = JsonFileStorage(path)
    seen = []
    mine.subscribe(seen.append)

    other.set_item("a", "1")
    other.set_item("b", "2")
    mine.poll()
    assert seen == ["a", "b"]

    mine.poll()
    assert seen == ["a", "b"]

    other.remove_item("a")
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000))
    mine.poll()
    assert seen == ["a", "b", "a"]
