from __future__ import annotations

import json

import pytest

from silenos.engine.actions import (
    ActivateAbilityAction,
    EndTurnAction,
    PlayCardAction,
    SkipDefenseAction,
    UnknownAction,
)
from silenos.engine.match import PlayerInfo, initialize_game, perform_action
from silenos.engine.serialize import action_from_dict, action_to_dict, snapshot, state_from_document
from silenos.paths import get_paths
from silenos.services.content import ContentError, ContentService, validate_json


def _content() -> ContentService:
    paths = get_paths()
    return ContentService(paths.data_dir, paths.schema_dir)


def _mid_game():
    cards = _content().load_cards_db()
    state = initialize_game(
        PlayerInfo(uid="u1", display_name="Ana", deck=["explorador"] * 40),
        PlayerInfo(uid="u2", display_name="Beto", deck=["centinela"] * 40),
        seed=3,
    )
    for uid, action in [
        ("u1", PlayCardAction(card_id="explorador")),
        ("u1", EndTurnAction()),
        ("u2", PlayCardAction(card_id="centinela")),
        ("u2", EndTurnAction()),
        ("u1", EndTurnAction()),
        ("u2", EndTurnAction()),
        ("u1", ActivateAbilityAction(instance_id="inst_1", ability="ATACAR 2(1)")),
    ]:
        state = perform_action(state, uid, action, cards)
    assert state.pending_attack is not None
    return state


def test_state_document_round_trip() -> None:
    state = _mid_game()
    doc = json.loads(json.dumps(snapshot(state)))
    validate_json(doc, _content().schema("game_state"), context="round trip")
    assert state_from_document(doc) == state


def test_state_document_shape() -> None:
    doc = snapshot(_mid_game())
    assert doc["pendingAttack"] == {
        "attackerPlayerKey": "player1",
        "attackerInstanceId": "inst_1",
        "attackLevel": 2,
    }
    assert doc["players"]["player2"] == {"uid": "u2", "displayName": "Beto", "puntos": 0, "unidades": 2}
    assert doc["fields"]["player2"] == [{"id": "centinela", "instanceId": "inst_2", "tapped": False}]
    assert doc["instanceSeq"] == 3


def test_document_without_counter_continues_after_live_instances() -> None:
    doc = snapshot(_mid_game())
    del doc["instanceSeq"]
    assert state_from_document(doc).instance_seq == 3


def test_invalid_document_fails_schema() -> None:
    doc = snapshot(_mid_game())
    doc["players"]["player1"]["unidades"] = -1
    with pytest.raises(ContentError, match="unidades"):
        validate_json(doc, _content().schema("game_state"), context="bad doc")


@pytest.mark.parametrize(
    "action",
    [
        PlayCardAction(card_id="explorador"),
        ActivateAbilityAction(instance_id="inst_4", ability="DEFENDER(1)"),
        SkipDefenseAction(),
        EndTurnAction(),
    ],
)
def test_action_requests(action) -> None:
    assert action_from_dict(action_to_dict(action)) == action


def test_action_request_wire_names() -> None:
    assert action_to_dict(ActivateAbilityAction(instance_id="i", ability="GANAR(1)")) == {
        "type": "ACTIVATE_ABILITY",
        "instanceId": "i",
        "action": "GANAR(1)",
    }
    assert action_from_dict({"type": "DEFEND"}) == UnknownAction(type="DEFEND")
    assert action_from_dict({"type": "PLAY_CARD"}) == UnknownAction(type="PLAY_CARD")
    assert action_from_dict({}) == UnknownAction(type="None")
