import pytest

from storysaves.game_state import BackpackState, InMemoryGameState, PlayerState
from storysaves.models import BackpackData, ChapterDescriptor, PlayerData, SaveRecord
from storysaves.restore import RestoreOrchestrator
from storysaves.scheduler import Scheduler
from storysaves.session import static_user
from storysaves.store import SaveStore


def save(filename, order, ts, items=(), player=None, flags=None, has_new=False):
    return SaveRecord(
        timestamp=ts,
        chapter=ChapterDescriptor(name=filename, order=order, filename=filename),
        player_data=player,
        backpack_data=BackpackData(items=list(items), max_items=20, has_new_item=has_new),
        game_flags=dict(flags or {}),
    )


class Refreshes:
    def __init__(self) -> None:
        self.calls = []

    def ui(self) -> None:
        self.calls.append("ui")

    def button(self) -> None:
        self.calls.append("button")


@pytest.fixture()
def refreshes() -> Refreshes:
    return Refreshes()


@pytest.fixture()
def game(refreshes) -> InMemoryGameState:
    return InMemoryGameState(
        player=PlayerState(),
        backpack=BackpackState(),
        flags=None,
        on_backpack_ui_refresh=refreshes.ui,
        on_backpack_button_refresh=refreshes.button,
    )


@pytest.fixture()
def store(kv) -> SaveStore:
    return SaveStore(kv)


def make_restorer(store, clock, game, user="alice"):
    return RestoreOrchestrator(store, static_user(user), game_state=game, scheduler=Scheduler(clock))


def test_startup_without_user_skips(store, clock, game):
    restorer = make_restorer(store, clock, game, user=None)
    assert restorer.startup() is False
    assert restorer.scheduler.pending == 0


def test_startup_without_saves_skips(store, clock, game):
    assert make_restorer(store, clock, game).startup() is False


def test_startup_applies_latest_after_delay(store, clock, game, refreshes):
    store.upsert("alice", save("prologue.html", 0, 1000, items=["map"]))
    store.upsert(
        "alice",
        save(
            "part_1_1.html",
            1,
            2000,
            items=["map", "key"],
            player=PlayerData(x=10, y=20, direction="up", is_moving=False, current_frame=3),
            flags={"lampLit": "yes"},
        ),
    )
    restorer = make_restorer(store, clock, game)
    assert restorer.startup() is True
    assert restorer.restore_pending

    clock.advance(999)
    restorer.scheduler.update()
    assert game.player.x == 0

    clock.advance(1)
    restorer.scheduler.update()
    assert not restorer.restore_pending
    assert (game.player.x, game.player.y, game.player.direction) == (10, 20, "up")
    assert game.player.stand_current_frame == 3
    assert game.backpack.items == ["map", "key"]
    assert game.backpack.max_items == 20
    assert game.flags == {"lampLit": "yes"}
    assert refreshes.calls == ["ui", "button"]


def test_apply_merges_into_existing_flags(store, clock):
    game = InMemoryGameState(flags={"a": "1", "b": "1"})
    restorer = make_restorer(store, clock, game)
    assert restorer.apply_loaded_data(save("x.html", 1, 1, flags={"b": "2"}))
    assert game.flags == {"a": "1", "b": "2"}


def test_apply_without_adapter_reports_false(store, clock):
    restorer = make_restorer(store, clock, None)
    assert restorer.apply_loaded_data(save("x.html", 1, 1)) is False
    assert restorer.apply_loaded_data(None) is False


class ExplodingGame(InMemoryGameState):
    def write_player(self, data):
        raise RuntimeError("sprite not ready")


def test_adapter_errors_are_logged_not_raised(store, clock, caplog):
    game = ExplodingGame(player=PlayerState())
    restorer = make_restorer(store, clock, game)
    record = save("x.html", 1, 1, player=PlayerData(x=1, y=1))
    assert restorer.apply_loaded_data(record) is False
    assert "Failed to apply loaded data" in caplog.text


def test_restore_latest_backpack_uses_newest_non_empty(store, clock, game, refreshes):
    store.upsert("alice", save("prologue.html", 0, 1000, items=["map"]))
    store.upsert("alice", save("part_1_1.html", 1, 2000, items=["map", "key"], has_new=True))
    store.upsert("alice", save("part_1_2.html", 3, 3000))
    restorer = make_restorer(store, clock, game)

    assert restorer.restore_latest_backpack() is True
    assert game.backpack.items == ["map", "key"]
    assert game.backpack.has_new_item is False
    assert game.player.x == 0
    assert refreshes.calls == ["ui", "button"]


def test_restore_latest_backpack_without_items(store, clock, game):
    store.upsert("alice", save("prologue.html", 0, 1000))
    assert make_restorer(store, clock, game).restore_latest_backpack() is False


def test_restore_latest_backpack_on_page_without_backpack(store, clock):
    store.upsert("alice", save("prologue.html", 0, 1000, items=["map"]))
    game = InMemoryGameState(player=PlayerState())
    assert make_restorer(store, clock, game).restore_latest_backpack() is False


def test_restored_items_are_a_copy(store, clock, game):
    store.upsert("alice", save("prologue.html", 0, 1000, items=["map"]))
    restorer = make_restorer(store, clock, game)
    restorer.restore_latest_backpack()
    game.backpack.items.append("rope")
    assert store.latest_backpack("alice").items == ["map"]
