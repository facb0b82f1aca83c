from __future__ import annotations

from .abilities import compile_ability, parse_token
from .actions import (
    Action,
    ActivateAbilityAction,
    EndTurnAction,
    PlayCardAction,
    SkipDefenseAction,
)
from .match import GameConfig, GameState, apply_action, legal_actions, next_actor, opponent_of
from .types import Ability, Accumulate, Attack, CardDatabase, Defend, Gain


def _ability_of(
    state: GameState, uid: str, action: ActivateAbilityAction, cards: CardDatabase
) -> Ability | None:
    key = state.key_for(uid)
    assert key is not None
    inst = state.find_instance(key, action.instance_id)
    token = parse_token(action.ability)
    if inst is None or token is None:
        return None
    return compile_ability(token, cards.get(inst.card_id).power)


def _score(state: GameState, uid: str, action: Action, cards: CardDatabase) -> float:
    """Greedy preference: points now, then board, then economy."""
    if isinstance(action, EndTurnAction):
        return 0.0
    if isinstance(action, SkipDefenseAction):
        return 0.5
    if isinstance(action, PlayCardAction):
        card = cards.get(action.card_id)
        if card.type == "ACTION":
            if isinstance(card.on_play, Gain):
                return 10.0 + card.on_play.amount
            if isinstance(card.on_play, Accumulate):
                return 2.0 + card.on_play.amount - card.cost
            return 0.1
        return 5.0 + card.power - card.cost
    if isinstance(action, ActivateAbilityAction):
        ability = _ability_of(state, uid, action, cards)
        if isinstance(ability, Gain):
            return 9.0 + ability.amount - ability.cost
        if isinstance(ability, Attack):
            return 8.0 + ability.level - ability.cost
        if isinstance(ability, Accumulate):
            return 1.0 + ability.amount - ability.cost
        if isinstance(ability, Defend):
            return _defense_value(state, uid, action, cards)
    return 0.0


def _defense_value(state: GameState, uid: str, action: ActivateAbilityAction, cards: CardDatabase) -> float:
    # Block only when the blocker survives.
    pending = state.pending_attack
    key = state.key_for(uid)
    if pending is None or key is None:
        return 0.0
    attacker = state.find_instance(pending.attacker_key, pending.attacker_instance_id)
    blocker = state.find_instance(key, action.instance_id)
    if attacker is None or blocker is None:
        return 0.0
    if cards.get(blocker.card_id).power > cards.get(attacker.card_id).power:
        return 1.0 + pending.level
    return 0.0


def choose_action(
    state: GameState,
    uid: str,
    cards: CardDatabase,
    config: GameConfig | None = None,
) -> Action:
    """Pick the best-scoring legal action for `uid`.

    Deterministic: ties keep the engine's enumeration order. Falls back to
    skipping the defense or ending the turn, whichever is legal.
    """
    options = legal_actions(state, uid, cards, config)
    if not options:
        key = state.key_for(uid)
        pending = state.pending_attack
        if key is not None and pending is not None and pending.attacker_key == opponent_of(key):
            return SkipDefenseAction()
        return EndTurnAction()
    best = options[0]
    best_score = _score(state, uid, best, cards)
    for action in options[1:]:
        score = _score(state, uid, action, cards)
        if score > best_score:
            best, best_score = action, score
    return best


def play_out(
    state: GameState,
    cards: CardDatabase,
    *,
    max_actions: int = 1000,
    config: GameConfig | None = None,
) -> tuple[GameState, list[tuple[str, Action]]]:
    """Let the bot play both seats until someone wins or `max_actions` is reached."""
    moves: list[tuple[str, Action]] = []
    for _ in range(max_actions):
        uid = next_actor(state)
        if uid is None:
            break
        action = choose_action(state, uid, cards, config)
        result = apply_action(state, uid, action, cards, config)
        moves.append((uid, action))
        if not result.ok:
            break
        state = result.state
    return state, moves
