import json
from pathlib import Path

import pytest

from storysaves.errors import PersistenceError
from storysaves.paths import ENV_DATA_DIR, default_data_dir, default_store_path
from storysaves.storage import InMemoryKeyValueStore, JSONFileKeyValueStore


def test_in_memory_round_trip():
    kv = InMemoryKeyValueStore()
    assert kv.get_item("k") is None
    kv.set_item("k", "v")
    assert kv.get_item("k") == "v"
    assert list(kv.keys()) == ["k"]
    kv.remove_item("k")
    kv.remove_item("k")
    assert kv.get_item("k") is None


def test_in_memory_rejects_non_strings():
    with pytest.raises(PersistenceError):
        InMemoryKeyValueStore().set_item("k", 1)  # type: ignore[arg-type]


def test_json_file_store_persists_across_instances(tmp_path: Path):
    path = tmp_path / "nested" / "store.json"
    JSONFileKeyValueStore(path).set_item("currentUser", "小明")
    again = JSONFileKeyValueStore(path)
    assert again.get_item("currentUser") == "小明"
    assert json.loads(path.read_text(encoding="utf-8")) == {"currentUser": "小明"}


def test_json_file_store_remove(tmp_path: Path):
    kv = JSONFileKeyValueStore(tmp_path / "store.json")
    kv.set_item("a", "1")
    kv.set_item("b", "2")
    kv.remove_item("a")
    assert sorted(kv.keys()) == ["b"]


def test_json_file_store_ignores_corrupt_file(tmp_path: Path):
    path = tmp_path / "store.json"
    path.write_text("not json", encoding="utf-8")
    kv = JSONFileKeyValueStore(path)
    assert kv.get_item("a") is None
    kv.set_item("a", "1")
    assert kv.get_item("a") == "1"


def test_json_file_store_leaves_no_temp_files(tmp_path: Path):
    kv = JSONFileKeyValueStore(tmp_path / "store.json")
    for i in range(3):
        kv.set_item("k", str(i))
    assert [p.name for p in tmp_path.iterdir()] == ["store.json"]


def test_data_dir_env_override(tmp_path: Path, monkeypatch):
    monkeypatch.setenv(ENV_DATA_DIR, str(tmp_path / "saves"))
    assert default_data_dir() == (tmp_path / "saves").resolve()
    assert default_store_path().parent == (tmp_path / "saves").resolve()


def test_data_dir_defaults_to_platform_dir(monkeypatch):
    monkeypatch.delenv(ENV_DATA_DIR, raising=False)
    assert "storysaves" in str(default_data_dir())
