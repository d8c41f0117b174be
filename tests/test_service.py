import json
from pathlib import Path

import pytest

from storysaves.events import PageHidden, PageUnloading
from storysaves.game_state import BackpackState, InMemoryGameState, PlayerState
from storysaves.service import GameSaveService
from storysaves.session import StoredUserProvider
from storysaves.storage import InMemoryKeyValueStore, JSONFileKeyValueStore


@pytest.fixture()
def game() -> InMemoryGameState:
    return InMemoryGameState(player=PlayerState(x=5, y=6), backpack=BackpackState(items=["map"]), flags={})


def logged_in(kv, username="alice"):
    StoredUserProvider(kv).login(username)
    return kv


def test_start_without_login_does_nothing(kv, clock, game):
    service = GameSaveService(kv, game_state=game, clock=clock)
    assert service.start() is False
    assert service.save_now() is False
    assert service.get_info() is None
    assert service.export_save() is None
    assert service.delete_save() is False


def test_full_session_over_two_pages(kv, clock, game):
    logged_in(kv)
    service = GameSaveService(kv, game_state=game, clock=clock)
    service.navigate("/game/prologue.html", "序章")
    assert service.start() is True
    assert service.current_user == "alice"

    assert service.save_now()
    clock.advance(2000)
    game.player.x = 99
    game.backpack.items.append("key")
    service.navigate("/game/part_1_1.html?lamp=on", "苏醒")
    service.events.emit(PageHidden())

    info = service.get_info()
    assert info.save_count == 2
    assert info.current_chapter.filename == "part_1_1.html"
    assert info.play_time == 2000
    latest = service.load_latest()
    assert latest.player_data.x == 99
    assert latest.game_flags == {"lamp": "on"}
    assert [s.chapter.order for s in service.get_all_saves()] == [0, 1]
    service.shutdown()

    # Next page load: a fresh service restores the furthest chapter
    page2 = InMemoryGameState(player=PlayerState(), backpack=BackpackState(), flags=None)
    next_service = GameSaveService(kv, game_state=page2, clock=clock)
    next_service.navigate("/game/part_1_2.html")
    assert next_service.start()
    clock.advance(1000)
    next_service.update()
    assert page2.player.x == 99
    assert page2.backpack.items == ["map", "key"]
    assert page2.flags == {"lamp": "on"}


def test_restore_latest_backpack_through_service(kv, clock, game):
    logged_in(kv)
    service = GameSaveService(kv, game_state=game, clock=clock)
    service.navigate("/game/prologue.html")
    service.start()
    service.save_now()
    service.shutdown()

    fresh = InMemoryGameState(player=PlayerState(x=1), backpack=BackpackState())
    other = GameSaveService(kv, game_state=fresh, clock=clock)
    other.start()
    assert other.restore_latest_backpack()
    assert fresh.backpack.items == ["map"]
    assert fresh.player.x == 1


def test_auto_save_through_update(kv, clock, game):
    logged_in(kv)
    service = GameSaveService(kv, game_state=game, clock=clock)
    service.navigate("/game/part_2.html")
    service.start()
    assert service.get_info() is None
    clock.advance(30000)
    service.update()
    assert service.get_info().save_count == 1


def test_export_import_delete_clear(kv, clock, game):
    logged_in(kv)
    service = GameSaveService(kv, game_state=game, clock=clock)
    service.navigate("/game/endings.html")
    service.start()
    service.events.emit(PageUnloading())
    exported = service.export_save()
    assert json.loads(exported)["saveInfo"]["username"] == "alice"

    assert service.delete_save()
    assert service.get_info() is None
    assert service.import_save(exported)
    assert service.get_info().current_chapter.name == "结局"

    service.clear_all_saves()
    assert service.get_all_saves() == []
    assert kv.get_item("currentUser") == "alice"


def test_file_backed_service_uses_configured_data_dir(tmp_path: Path, clock, game, monkeypatch):
    monkeypatch.setenv("STORYSAVES_DATA_DIR", str(tmp_path))
    service = GameSaveService(game_state=game, clock=clock, user_provider=lambda: "erin")
    assert isinstance(service.kv_store, JSONFileKeyValueStore)
    service.navigate("/game/prologue.html")
    service.start()
    assert service.save_now()
    assert (tmp_path / "local_storage.json").exists()


def test_from_config_file(tmp_path: Path, clock, game):
    cfg = tmp_path / "saves.yaml"
    cfg.write_text("store_key: otherKey\ndebounce_ms: 0\n", encoding="utf-8")
    kv = logged_in(InMemoryKeyValueStore())
    service = GameSaveService.from_config_file(cfg, kv_store=kv, game_state=game, clock=clock)
    service.start()
    assert service.save_now()
    assert service.save_now()
    assert kv.get_item("otherKey") is not None
    assert kv.get_item("gameSaveData") is None
