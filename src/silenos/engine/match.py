from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Iterable, Literal, Mapping, Sequence

from .abilities import ability_options, compile_ability, parse_token
from .actions import (
    Action,
    ActivateAbilityAction,
    EndTurnAction,
    PlayCardAction,
    SkipDefenseAction,
)
from .types import Accumulate, Attack, CardDatabase, CardDefinition, Defend, Gain

logger = logging.getLogger(__name__)

PlayerKey = Literal["player1", "player2"]
PLAYER_KEYS: tuple[PlayerKey, PlayerKey] = ("player1", "player2")

RejectReason = Literal[
    "game_over",
    "unknown_player",
    "not_your_turn",
    "card_not_in_hand",
    "unknown_card",
    "insufficient_units",
    "instance_not_found",
    "instance_tapped",
    "malformed_ability",
    "unknown_ability",
    "ability_not_on_card",
    "attack_pending",
    "no_pending_attack",
    "own_attack",
    "unknown_action",
]


@dataclass(frozen=True)
class GameConfig:
    starting_hand: int = 5
    starting_units: int = 1
    turn_income: int = 1
    win_points: int = 13
    deck_size: int | None = 40


@dataclass(frozen=True)
class PlayerInfo:
    uid: str
    display_name: str
    deck: Sequence[str]


@dataclass(frozen=True)
class CardInstance:
    card_id: str
    instance_id: str
    tapped: bool = True


@dataclass(frozen=True)
class PlayerState:
    uid: str
    display_name: str
    points: int = 0
    units: int = 0


@dataclass(frozen=True)
class PendingAttack:
    attacker_key: PlayerKey
    attacker_instance_id: str
    level: int


@dataclass(frozen=True)
class GameState:
    """Root game state. Transitions build new states and never touch this one.

    The per-player mappings are copied into read-only views on construction,
    so a state handed out by the engine cannot be edited through another.
    """

    turn: str
    players: Mapping[PlayerKey, PlayerState]
    decks: Mapping[PlayerKey, tuple[str, ...]]
    hands: Mapping[PlayerKey, tuple[str, ...]]
    fields: Mapping[PlayerKey, tuple[CardInstance, ...]]
    log: tuple[str, ...] = ()
    winner: str | None = None
    pending_attack: PendingAttack | None = None
    instance_seq: int = 1

    def __post_init__(self) -> None:
        for name in ("players", "decks", "hands", "fields"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def key_for(self, uid: str) -> PlayerKey | None:
        for key in PLAYER_KEYS:
            if self.players[key].uid == uid:
                return key
        return None

    def find_instance(self, key: PlayerKey, instance_id: str) -> CardInstance | None:
        for inst in self.fields[key]:
            if inst.instance_id == instance_id:
                return inst
        return None


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    state: GameState
    reason: RejectReason | None = None


def opponent_of(key: PlayerKey) -> PlayerKey:
    return "player2" if key == "player1" else "player1"


def _shuffle(rng: random.Random, items: list[str]) -> None:
    # Fisher-Yates, in place.
    rng.shuffle(items)


# ---------------------------------------------------------------------------
# Structural updates. None of these mutate their input.


def _with_player(state: GameState, key: PlayerKey, **changes: object) -> GameState:
    players = dict(state.players)
    players[key] = replace(players[key], **changes)
    return replace(state, players=players)


def _with_hand(state: GameState, key: PlayerKey, hand: Iterable[str]) -> GameState:
    hands = dict(state.hands)
    hands[key] = tuple(hand)
    return replace(state, hands=hands)


def _with_field(state: GameState, key: PlayerKey, instances: Iterable[CardInstance]) -> GameState:
    fields = dict(state.fields)
    fields[key] = tuple(instances)
    return replace(state, fields=fields)


def _narrate(state: GameState, line: str) -> GameState:
    return replace(state, log=state.log + (line,))


def _tap(state: GameState, key: PlayerKey, instance_id: str) -> GameState:
    return _with_field(
        state,
        key,
        [replace(i, tapped=True) if i.instance_id == instance_id else i for i in state.fields[key]],
    )


def _destroy(state: GameState, key: PlayerKey, instance_id: str) -> GameState:
    return _with_field(state, key, [i for i in state.fields[key] if i.instance_id != instance_id])


def _draw(state: GameState, key: PlayerKey) -> GameState:
    deck = state.decks[key]
    if not deck:
        return state
    decks = dict(state.decks)
    decks[key] = deck[:-1]
    state = replace(state, decks=decks)
    return _with_hand(state, key, state.hands[key] + (deck[-1],))


def _add_points(state: GameState, key: PlayerKey, amount: int) -> GameState:
    return _with_player(state, key, points=state.players[key].points + amount)


def _add_units(state: GameState, key: PlayerKey, amount: int) -> GameState:
    return _with_player(state, key, units=state.players[key].units + amount)


def _reject(state: GameState, reason: RejectReason) -> ActionResult:
    logger.debug("Action rejected: %s", reason)
    return ActionResult(ok=False, state=state, reason=reason)


def _accept(state: GameState) -> ActionResult:
    return ActionResult(ok=True, state=state)


# ---------------------------------------------------------------------------
# Rules


def _check_winner(state: GameState, acting: PlayerKey, config: GameConfig) -> GameState:
    if state.winner is not None:
        return state
    # Acting player first: on a simultaneous threshold the actor wins.
    for key in (acting, opponent_of(acting)):
        ps = state.players[key]
        if ps.points >= config.win_points:
            state = replace(state, winner=ps.display_name)
            return _narrate(state, f"{ps.display_name} wins with {ps.points} points.")
    return state


def _credit_pending(state: GameState) -> GameState:
    """Resolve the pending attack as unblocked and clear it."""
    pending = state.pending_attack
    if pending is None:
        return state
    state = replace(state, pending_attack=None)
    if state.find_instance(pending.attacker_key, pending.attacker_instance_id) is None:
        return _narrate(state, "The attack fizzles: the attacker has left the field.")
    attacker = state.players[pending.attacker_key]
    state = _add_points(state, pending.attacker_key, pending.level)
    return _narrate(state, f"The attack goes unblocked. {attacker.display_name} scores {pending.level}.")


def _play_card(
    state: GameState, key: PlayerKey, action: PlayCardAction, cards: CardDatabase
) -> ActionResult:
    ps = state.players[key]
    if state.turn != ps.uid:
        return _reject(state, "not_your_turn")
    hand = list(state.hands[key])
    if action.card_id not in hand:
        return _reject(state, "card_not_in_hand")
    card = cards.find(action.card_id)
    if card is None:
        return _reject(state, "unknown_card")
    if ps.units < card.cost:
        return _reject(state, "insufficient_units")

    hand.remove(action.card_id)
    state = _with_hand(state, key, hand)
    state = _with_player(state, key, units=ps.units - card.cost)
    state = _narrate(state, f"{ps.display_name} plays {card.name}.")

    if card.type == "ACTION":
        effect = card.on_play
        if isinstance(effect, Accumulate):
            state = _add_units(state, key, effect.amount)
            state = _narrate(state, f"{ps.display_name} gains {effect.amount} units.")
        elif isinstance(effect, Gain):
            state = _add_points(state, key, effect.amount)
            state = _narrate(state, f"{ps.display_name} gains {effect.amount} points.")
        return _accept(state)

    instance = CardInstance(card_id=card.id, instance_id=f"inst_{state.instance_seq}", tapped=True)
    state = replace(state, instance_seq=state.instance_seq + 1)
    state = _with_field(state, key, state.fields[key] + (instance,))
    return _accept(state)


def _can_defend(state: GameState, key: PlayerKey, cards: CardDatabase) -> bool:
    units = state.players[key].units
    for inst in state.fields[key]:
        if inst.tapped:
            continue
        card = cards.find(inst.card_id)
        if card is None:
            continue
        if any(cost <= units for cost in card.defense_costs()):
            return True
    return False


def _resolve_combat(
    state: GameState,
    defender_key: PlayerKey,
    defender: CardInstance,
    defender_card: CardDefinition,
    cards: CardDatabase,
) -> GameState:
    pending = state.pending_attack
    assert pending is not None
    state = replace(state, pending_attack=None)
    attacker = state.find_instance(pending.attacker_key, pending.attacker_instance_id)
    if attacker is None:
        return _narrate(state, "The attack had already vanished; nothing to block.")

    attacker_card = cards.get(attacker.card_id)
    attack_power = attacker_card.power
    defense_power = defender_card.power
    state = _narrate(
        state, f"{defender_card.name} ({defense_power}) blocks {attacker_card.name} ({attack_power})."
    )
    if attack_power >= defense_power:
        state = _destroy(state, defender_key, defender.instance_id)
        state = _narrate(state, f"{defender_card.name} is destroyed.")
    if defense_power >= attack_power:
        state = _destroy(state, pending.attacker_key, attacker.instance_id)
        state = _narrate(state, f"{attacker_card.name} is destroyed.")
    return state


def _activate_ability(
    state: GameState, key: PlayerKey, action: ActivateAbilityAction, cards: CardDatabase
) -> ActionResult:
    ps = state.players[key]
    inst = state.find_instance(key, action.instance_id)
    if inst is None:
        return _reject(state, "instance_not_found")
    if inst.tapped:
        return _reject(state, "instance_tapped")
    token = parse_token(action.ability)
    if token is None:
        return _reject(state, "malformed_ability")
    card = cards.find(inst.card_id)
    if card is None:
        return _reject(state, "unknown_card")
    ability = compile_ability(token, card.power)
    if ability is None:
        return _reject(state, "unknown_ability")
    if ability not in card.abilities:
        return _reject(state, "ability_not_on_card")

    if isinstance(ability, Defend):
        pending = state.pending_attack
        if pending is None:
            return _reject(state, "no_pending_attack")
        if pending.attacker_key == key:
            return _reject(state, "own_attack")
    else:
        if state.turn != ps.uid:
            return _reject(state, "not_your_turn")
        if isinstance(ability, Attack) and state.pending_attack is not None:
            return _reject(state, "attack_pending")

    if ps.units < ability.cost:
        return _reject(state, "insufficient_units")

    state = _with_player(state, key, units=ps.units - ability.cost)
    state = _tap(state, key, inst.instance_id)
    state = _narrate(state, f"{ps.display_name} activates {token.text} on {card.name}.")

    if isinstance(ability, Accumulate):
        state = _add_units(state, key, ability.amount)
    elif isinstance(ability, Gain):
        state = _add_points(state, key, ability.amount)
    elif isinstance(ability, Attack):
        opp = opponent_of(key)
        if _can_defend(state, opp, cards):
            state = replace(
                state,
                pending_attack=PendingAttack(
                    attacker_key=key, attacker_instance_id=inst.instance_id, level=ability.level
                ),
            )
            state = _narrate(state, f"{state.players[opp].display_name} may defend.")
        else:
            state = _add_points(state, key, ability.level)
            state = _narrate(state, f"No defense possible. {ps.display_name} scores {ability.level}.")
    else:
        state = _resolve_combat(state, key, inst, card, cards)
    return _accept(state)


def _skip_defense(state: GameState, key: PlayerKey) -> ActionResult:
    pending = state.pending_attack
    if pending is None:
        return _reject(state, "no_pending_attack")
    if pending.attacker_key == key:
        return _reject(state, "own_attack")
    state = _narrate(state, f"{state.players[key].display_name} declines to defend.")
    return _accept(_credit_pending(state))


def _end_turn(state: GameState, key: PlayerKey, config: GameConfig) -> ActionResult:
    ps = state.players[key]
    if state.turn != ps.uid:
        return _reject(state, "not_your_turn")
    pending = state.pending_attack
    if pending is not None and pending.attacker_key == key:
        state = _credit_pending(state)

    nxt = opponent_of(key)
    state = replace(state, turn=state.players[nxt].uid)
    state = _narrate(state, f"{ps.display_name} ends the turn.")
    # Start of turn: untap, draw, income.
    state = _with_field(state, nxt, [replace(i, tapped=False) for i in state.fields[nxt]])
    state = _draw(state, nxt)
    state = _add_units(state, nxt, config.turn_income)
    return _accept(state)


def apply_action(
    state: GameState,
    actor_uid: str,
    action: Action,
    cards: CardDatabase,
    config: GameConfig | None = None,
) -> ActionResult:
    """Apply one action and report whether it was accepted.

    The input state is never modified. A rejected action returns the very
    same state object along with the reason.
    """
    cfg = config or GameConfig()
    if state.winner is not None:
        return _reject(state, "game_over")
    key = state.key_for(actor_uid)
    if key is None:
        return _reject(state, "unknown_player")

    if isinstance(action, PlayCardAction):
        result = _play_card(state, key, action, cards)
    elif isinstance(action, ActivateAbilityAction):
        result = _activate_ability(state, key, action, cards)
    elif isinstance(action, SkipDefenseAction):
        result = _skip_defense(state, key)
    elif isinstance(action, EndTurnAction):
        result = _end_turn(state, key, cfg)
    else:
        logger.warning("Unknown action type: %r", getattr(action, "type", action))
        return _reject(state, "unknown_action")

    if not result.ok:
        return result
    return _accept(_check_winner(result.state, key, cfg))


def perform_action(
    state: GameState,
    actor_uid: str,
    action: Action,
    cards: CardDatabase,
    config: GameConfig | None = None,
) -> GameState:
    return apply_action(state, actor_uid, action, cards, config).state


def initialize_game(
    player1: PlayerInfo,
    player2: PlayerInfo,
    *,
    seed: int | None = None,
    config: GameConfig | None = None,
) -> GameState:
    cfg = config or GameConfig()
    if cfg.deck_size is not None:
        if len(player1.deck) != cfg.deck_size or len(player2.deck) != cfg.deck_size:
            raise ValueError(f"Decks must be exactly {cfg.deck_size} cards.")
    if player1.uid == player2.uid:
        raise ValueError("Both players have the same uid.")

    rng: random.Random = random.Random(seed) if seed is not None else random.SystemRandom()
    players: dict[PlayerKey, PlayerState] = {}
    decks: dict[PlayerKey, tuple[str, ...]] = {}
    hands: dict[PlayerKey, tuple[str, ...]] = {}
    for key, info in zip(PLAYER_KEYS, (player1, player2)):
        deck = list(info.deck)
        _shuffle(rng, deck)
        hand: list[str] = []
        for _ in range(cfg.starting_hand):
            if not deck:
                break
            hand.append(deck.pop())
        decks[key] = tuple(deck)
        hands[key] = tuple(hand)
        players[key] = PlayerState(
            uid=info.uid, display_name=info.display_name, points=0, units=cfg.starting_units
        )

    return GameState(
        turn=player1.uid,
        players=players,
        decks=decks,
        hands=hands,
        fields={key: () for key in PLAYER_KEYS},
        log=("The game has started.",),
    )


def next_actor(state: GameState) -> str | None:
    """Uid of the player the game is waiting on."""
    if state.winner is not None:
        return None
    if state.pending_attack is not None:
        return state.players[opponent_of(state.pending_attack.attacker_key)].uid
    return state.turn


def legal_actions(
    state: GameState,
    uid: str,
    cards: CardDatabase,
    config: GameConfig | None = None,
) -> list[Action]:
    """Every action `uid` could submit right now that the engine would accept."""
    key = state.key_for(uid)
    if key is None or state.winner is not None:
        return []

    candidates: list[Action] = [PlayCardAction(card_id=cid) for cid in dict.fromkeys(state.hands[key])]
    for inst in state.fields[key]:
        card = cards.find(inst.card_id)
        if card is None or inst.tapped:
            continue
        for text in dict.fromkeys(ability_options(card)):
            candidates.append(ActivateAbilityAction(instance_id=inst.instance_id, ability=text))
    candidates.append(SkipDefenseAction())
    candidates.append(EndTurnAction())
    return [a for a in candidates if apply_action(state, uid, a, cards, config).ok]


def replay(
    state: GameState,
    moves: Iterable[tuple[str, Action]],
    cards: CardDatabase,
    config: GameConfig | None = None,
) -> GameState:
    for uid, action in moves:
        state = perform_action(state, uid, action, cards, config)
        if state.winner is not None:
            break
    return state
