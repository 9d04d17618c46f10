from __future__ import annotations

import sqlite3
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gamebook.config import GameConfig
from gamebook.game import Game, MemorySink
from gamebook.lifecycle import LifecycleState
from gamebook.persistence import (
    InMemorySaveStore,
    SQLiteSaveStore,
    load_session,
    save_session,
)
from gamebook.session import CombatState, GameSession

FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures" / "content"


def _session() -> GameSession:
    return GameSession(
        character="Lydia Lau",
        current_entry="3",
        previous_entry="2",
        current_date=datetime(1931, 9, 3, 21, 15),
        health=42,
        inventory=["Camera", "Lantern"],
        skills={"Persuade": 35},
        stats={"DEX": 70},
        visited_entries={"1", "2", "3"},
        daily_skill_usage={"4": {"Library Use": "1931-09-03"}},
        current_locale="Kingsport",
    )


def test_session_payload_is_json_friendly():
    payload = _session().to_payload()
    assert payload["currentDate"] == "1931-09-03T21:15:00"
    assert payload["visitedEntries"] == ["1", "2", "3"]
    assert payload["combat"] == {"isActive": False}
    assert GameSession.from_payload(payload) == _session()


def test_fight_and_daily_counts_survive_a_save():
    session = _session()
    session.combat = CombatState(
        is_active=True,
        opponent="Hooded Cultist",
        opponent_health=4,
        opponent_max_health=9,
        attack_chance=40,
        damage="1D6",
        win="15",
        lose="16",
    )
    session.daily_choice_usage = {"1931-09-03": {"4": 2}}
    session.damage_bonus = "+1D4"
    payload = session.to_payload()
    assert payload["combat"]["opponent"]["health"] == 4
    assert payload["combat"]["outcome"] == {"win": "15", "lose": "16"}
    store = InMemorySaveStore()
    save_session(store, session)
    restored = load_session(store)
    assert restored == session
    assert restored.choices_taken_today("4") == 2


def test_template_damage_bonus_is_normalised():
    for raw, expected in (("1D4", "+1D4"), ("None", ""), ("-1", "-1")):
        session = GameSession.from_template(
            "Lydia Lau", {"DB": raw}, start_entry="1", config=GameConfig()
        )
        assert session.damage_bonus == expected


def test_in_memory_store_round_trip():
    store = InMemorySaveStore()
    save_session(store, _session())
    assert load_session(store) == _session()
    assert load_session(store, "other") is None
    assert store.keys() == ["gameState"]


def test_in_memory_store_copies_payload():
    store = InMemorySaveStore()
    payload = {"value": [1]}
    store.save("slot", payload)
    payload["value"].append(2)
    assert store.load("slot") == {"value": [1]}


def test_sqlite_store_persists_across_instances(tmp_path: Path) -> None:
    db_path = tmp_path / "saves" / "game.db"
    store = SQLiteSaveStore(db_path)
    save_session(store, _session(), "slot-1")
    store.close()

    reopened = SQLiteSaveStore(db_path)
    assert load_session(reopened, "slot-1") == _session()
    assert reopened.load("missing") is None
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute("SELECT slot, saved_at FROM saves").fetchall()
    assert [row[0] for row in rows] == ["slot-1"]
    assert rows[0][1]
    reopened.close()


def test_sqlite_store_overwrites_slot(tmp_path: Path) -> None:
    store = SQLiteSaveStore(tmp_path / "game.db")
    store.save("slot", {"n": 1})
    store.save("slot", {"n": 2})
    assert store.load("slot") == {"n": 2}
    assert store.keys() == ["slot"]
    store.close()


def test_sqlite_store_path_from_environment(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GAMEBOOK_SAVE_PATH", str(tmp_path / "env.db"))
    store = SQLiteSaveStore()
    assert store.db_path == tmp_path / "env.db"


def test_unreadable_save_yields_none():
    store = InMemorySaveStore()
    store.save("gameState", {"character": "Lydia Lau"})
    assert load_session(store) is None


def _game(store) -> tuple[Game, MemorySink]:
    sink = MemorySink()
    game = Game.from_directory(
        FIXTURE_DIR, sink, GameConfig(start_date=datetime(1931, 9, 1, 8, 0)), store=store
    )
    game.start()
    return game, sink


def test_game_load_refreshes_every_display():
    store = InMemorySaveStore()
    game, sink = _game(store)
    game.choose(0)
    game.choose(0)
    assert game.session.health == 100
    assert game.save()

    game.restart()
    assert game.session.health == 60
    assert sink.description == "You are in a dark room..."

    assert game.load()
    assert game.session.current_entry == "3"
    assert game.session.inventory == ["Lantern", "Magical Artifact"]
    assert sink.description == "You step into a long hall."
    assert sink.stats["Health"] == 100
    assert sink.stats["Inventory"] == "Lantern, Magical Artifact"
    assert sink.choice_labels == ["Walk into town", "Open the cellar door"]


def test_loading_successor_restores_roster_position():
    store = InMemorySaveStore()
    game, _ = _game(store)
    game.signal_death()
    assert game.allocation_pending
    game.save()
    game.restart()
    game.load()
    assert game.lifecycle.current_investigator == "Ernest Holt"
    assert game.allocation_pending
    assert not game.choose(0)
    game.complete_allocation({"Dodge": 10})
    assert game.choose(0)


def test_load_without_save_keeps_game():
    game, sink = _game(InMemorySaveStore())
    assert not game.load()
    assert game.state is LifecycleState.ACTIVE
    assert sink.notifications[-1][1] == "No saved game found."
