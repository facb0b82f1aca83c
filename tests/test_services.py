from __future__ import annotations

import json
from pathlib import Path

import pytest

from silenos.paths import get_paths
from silenos.services.content import ContentService
from silenos.services.decks import DECK_SIZE, Deck, DeckError, DeckService
from silenos.services.games import GameError, GameService, InMemoryGameStore
from silenos.services.telemetry import TelemetryService


def _content() -> ContentService:
    paths = get_paths()
    return ContentService(paths.data_dir, paths.schema_dir)


def _legal_deck(cards) -> list[str]:
    return sorted(cards.all_ids())[:20] * 2


# ---------------------------------------------------------------------------
# Decks


def test_deck_builder_limits(tmp_path: Path) -> None:
    content = _content()
    cards = content.load_cards_db()
    decks = DeckService(tmp_path / "decks", cards, schema=content.schema("deck"))
    deck = Deck()

    decks.add_card(deck, "explorador")
    decks.add_card(deck, "explorador")
    with pytest.raises(DeckError, match="copies"):
        decks.add_card(deck, "explorador")
    with pytest.raises(DeckError, match="Unknown card"):
        decks.add_card(deck, "dragon")

    decks.remove_card(deck, "explorador")
    assert deck.card_ids == ["explorador"]
    decks.remove_card(deck, "not-there")
    assert deck.card_ids == ["explorador"]

    ok, msg = decks.validate_deck(deck)
    assert not ok
    assert str(DECK_SIZE) in msg


def test_deck_cannot_exceed_forty(tmp_path: Path) -> None:
    cards = _content().load_cards_db()
    decks = DeckService(tmp_path, cards)
    deck = Deck()
    for cid in _legal_deck(cards):
        decks.add_card(deck, cid)
    assert decks.validate_deck(deck) == (True, "OK")
    with pytest.raises(DeckError, match="more than 40"):
        decks.add_card(deck, sorted(cards.all_ids())[-1])


def test_deck_save_and_load(tmp_path: Path) -> None:
    content = _content()
    cards = content.load_cards_db()
    decks = DeckService(tmp_path, cards, schema=content.schema("deck"))
    assert decks.load("nobody").card_ids == []

    deck = Deck(card_ids=_legal_deck(cards))
    decks.save("u1", deck)
    loaded = decks.load("u1")
    assert loaded.card_ids == deck.card_ids
    assert loaded.updated_at is not None

    decks.clear(loaded)
    assert loaded.card_ids == []


def test_deck_load_rejects_bad_file(tmp_path: Path) -> None:
    content = _content()
    decks = DeckService(tmp_path, content.load_cards_db(), schema=content.schema("deck"))
    (tmp_path / "u1.json").write_text(json.dumps({"cardIds": "explorador"}), encoding="utf-8")
    with pytest.raises(DeckError):
        decks.load("u1")


@pytest.mark.parametrize("uid", ["../escape", "a/b", "", "..", "u1.json"])
def test_deck_paths_refuse_unsafe_user_ids(tmp_path: Path, uid: str) -> None:
    decks = DeckService(tmp_path / "decks", _content().load_cards_db())
    with pytest.raises(DeckError, match="Invalid user id"):
        decks.save(uid, Deck())
    with pytest.raises(DeckError, match="Invalid user id"):
        decks.load(uid)
    assert not (tmp_path / "escape.json").exists()


def test_decks_default_to_the_userdata_dir() -> None:
    decks = DeckService(None, _content().load_cards_db())
    assert decks.decks_dir == get_paths().userdata_dir / "decks"


# ---------------------------------------------------------------------------
# Games


def _service(tmp_path: Path) -> tuple[GameService, TelemetryService]:
    content = _content()
    telemetry = TelemetryService(tmp_path / "telemetry.jsonl")
    service = GameService(
        InMemoryGameStore(),
        content.load_cards_db(),
        state_schema=content.schema("game_state"),
        telemetry=telemetry,
    )
    return service, telemetry


def test_game_lifecycle(tmp_path: Path) -> None:
    service, telemetry = _service(tmp_path)
    game = service.create_game("u1", "Ana", ["explorador"] * 40)
    assert game.status == "waiting"
    assert game.game_state is None

    with pytest.raises(GameError, match="own game"):
        service.join_game(game.id, "u1", "Ana", ["explorador"] * 40)
    with pytest.raises(GameError, match="exactly 40"):
        service.join_game(game.id, "u2", "Beto", ["explorador"] * 10)

    joined = service.join_game(game.id, "u2", "Beto", ["pergamino"] * 40, seed=11)
    assert joined.status == "active"
    assert joined.game_state is not None
    assert joined.game_state["turn"] == "u1"

    with pytest.raises(GameError, match="not open"):
        service.join_game(game.id, "u3", "Cora", ["pergamino"] * 40)

    result = service.send_action(game.id, "u1", {"type": "PLAY_CARD", "cardId": "explorador"})
    assert result.ok
    stored = service.get_game(game.id).game_state
    assert stored is not None
    assert stored["players"]["player1"]["unidades"] == 0
    assert stored["fields"]["player1"][0]["tapped"] is True

    rejected = service.send_action(game.id, "u2", {"type": "END_TURN"})
    assert not rejected.ok
    assert rejected.reason == "not_your_turn"
    assert service.get_game(game.id).game_state == stored

    types = [r["type"] for r in telemetry.records()]
    assert types == ["game_created", "game_joined", "action_applied", "action_rejected"]
    assert telemetry.records("action_rejected")[0]["payload"]["reason"] == "not_your_turn"


def test_game_finishes_with_a_winner(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    game = service.create_game("u1", "Ana", ["gloria"] * 40)
    service.join_game(game.id, "u2", "Beto", ["pergamino"] * 40, seed=1)

    result = service.send_action(game.id, "u1", {"type": "PLAY_CARD", "cardId": "gloria"})
    assert result.state.winner == "Ana"
    assert service.get_game(game.id).status == "finished"

    after = service.send_action(game.id, "u1", {"type": "END_TURN"})
    assert after.reason == "game_over"


def test_timeout_declines_defense_then_ends_turn(tmp_path: Path) -> None:
    service, telemetry = _service(tmp_path)
    game = service.create_game("u1", "Ana", ["explorador"] * 40)
    service.join_game(game.id, "u2", "Beto", ["centinela"] * 40, seed=2)

    for uid, request in [
        ("u1", {"type": "PLAY_CARD", "cardId": "explorador"}),
        ("u1", {"type": "END_TURN"}),
        ("u2", {"type": "PLAY_CARD", "cardId": "centinela"}),
        ("u2", {"type": "END_TURN"}),
        ("u1", {"type": "END_TURN"}),
        ("u2", {"type": "END_TURN"}),
        ("u1", {"type": "ACTIVATE_ABILITY", "instanceId": "inst_1", "action": "ATACAR 2(1)"}),
    ]:
        assert service.send_action(game.id, uid, request).ok

    result = service.resolve_timeout(game.id)
    assert result.ok
    assert result.state.pending_attack is None
    assert result.state.players["player1"].points == 2
    assert result.state.turn == "u1"

    result = service.resolve_timeout(game.id)
    assert result.ok
    assert result.state.turn == "u2"
    assert [r["payload"]["type"] for r in telemetry.records("timeout")] == ["SKIP_DEFENSE", "END_TURN"]


def test_unknown_game(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    with pytest.raises(GameError, match="not found"):
        service.send_action("missing", "u1", {"type": "END_TURN"})
