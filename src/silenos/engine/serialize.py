"""Conversion between engine values and the plain documents the storage layer keeps.

Documents use the camelCase field names of the stored game record so that a
state can be written out, read back by another client, and fed to the engine
again without loss.
"""

from __future__ import annotations

from typing import Mapping

from .actions import (
    Action,
    ActivateAbilityAction,
    EndTurnAction,
    PlayCardAction,
    SkipDefenseAction,
    UnknownAction,
)
from .match import PLAYER_KEYS, CardInstance, GameState, PendingAttack, PlayerState


def action_to_dict(a: Action) -> dict[str, object]:
    if isinstance(a, PlayCardAction):
        return {"type": "PLAY_CARD", "cardId": a.card_id}
    if isinstance(a, ActivateAbilityAction):
        return {"type": "ACTIVATE_ABILITY", "instanceId": a.instance_id, "action": a.ability}
    if isinstance(a, SkipDefenseAction):
        return {"type": "SKIP_DEFENSE"}
    if isinstance(a, EndTurnAction):
        return {"type": "END_TURN"}
    return {"type": a.type}


def action_from_dict(d: Mapping[str, object]) -> Action:
    """Build an action from a request. Unrecognized or incomplete requests become `UnknownAction`."""
    t = d.get("type")
    if t == "PLAY_CARD":
        card_id = d.get("cardId")
        if isinstance(card_id, str):
            return PlayCardAction(card_id=card_id)
    elif t == "ACTIVATE_ABILITY":
        instance_id = d.get("instanceId")
        ability = d.get("action")
        if isinstance(instance_id, str) and isinstance(ability, str):
            return ActivateAbilityAction(instance_id=instance_id, ability=ability)
    elif t == "SKIP_DEFENSE":
        return SkipDefenseAction()
    elif t == "END_TURN":
        return EndTurnAction()
    return UnknownAction(type=str(t))


def _instance_to_dict(i: CardInstance) -> dict[str, object]:
    return {"id": i.card_id, "instanceId": i.instance_id, "tapped": i.tapped}


def _player_to_dict(p: PlayerState) -> dict[str, object]:
    return {
        "uid": p.uid,
        "displayName": p.display_name,
        "puntos": p.points,
        "unidades": p.units,
    }


def _pending_to_dict(p: PendingAttack | None) -> dict[str, object] | None:
    if p is None:
        return None
    return {
        "attackerPlayerKey": p.attacker_key,
        "attackerInstanceId": p.attacker_instance_id,
        "attackLevel": p.level,
    }


def snapshot(state: GameState) -> dict[str, object]:
    """Return a JSON-serializable document of the game state."""
    return {
        "turn": state.turn,
        "winner": state.winner,
        "pendingAttack": _pending_to_dict(state.pending_attack),
        "players": {k: _player_to_dict(state.players[k]) for k in PLAYER_KEYS},
        "decks": {k: list(state.decks[k]) for k in PLAYER_KEYS},
        "hands": {k: list(state.hands[k]) for k in PLAYER_KEYS},
        "fields": {k: [_instance_to_dict(i) for i in state.fields[k]] for k in PLAYER_KEYS},
        "log": list(state.log),
        "instanceSeq": state.instance_seq,
    }


def _next_seq(fields: Mapping[str, tuple[CardInstance, ...]]) -> int:
    highest = 0
    for instances in fields.values():
        for i in instances:
            suffix = i.instance_id.removeprefix("inst_")
            if suffix.isdigit():
                highest = max(highest, int(suffix))
    return highest + 1


def state_from_document(doc: Mapping[str, object]) -> GameState:
    """Rebuild a `GameState` from a document that already passed schema validation."""
    players_raw = doc["players"]
    decks_raw = doc["decks"]
    hands_raw = doc["hands"]
    fields_raw = doc["fields"]
    assert isinstance(players_raw, dict) and isinstance(decks_raw, dict)
    assert isinstance(hands_raw, dict) and isinstance(fields_raw, dict)

    players = {
        k: PlayerState(
            uid=players_raw[k]["uid"],
            display_name=players_raw[k]["displayName"],
            points=players_raw[k]["puntos"],
            units=players_raw[k]["unidades"],
        )
        for k in PLAYER_KEYS
    }
    fields = {
        k: tuple(
            CardInstance(card_id=i["id"], instance_id=i["instanceId"], tapped=i["tapped"])
            for i in fields_raw[k]
        )
        for k in PLAYER_KEYS
    }

    pending = None
    pending_raw = doc.get("pendingAttack")
    if isinstance(pending_raw, dict):
        pending = PendingAttack(
            attacker_key=pending_raw["attackerPlayerKey"],
            attacker_instance_id=pending_raw["attackerInstanceId"],
            level=pending_raw["attackLevel"],
        )

    log_raw = doc.get("log", [])
    seq_raw = doc.get("instanceSeq")
    if not isinstance(seq_raw, int):
        # Documents written before the counter existed.
        seq_raw = _next_seq(fields)
    winner = doc.get("winner")
    turn = doc["turn"]
    assert isinstance(turn, str)

    return GameState(
        turn=turn,
        players=players,
        decks={k: tuple(decks_raw[k]) for k in PLAYER_KEYS},
        hands={k: tuple(hands_raw[k]) for k in PLAYER_KEYS},
        fields=fields,
        log=tuple(log_raw) if isinstance(log_raw, list) else (),
        winner=winner if isinstance(winner, str) else None,
        pending_attack=pending,
        instance_seq=seq_raw,
    )
