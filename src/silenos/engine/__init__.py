"""Pure rules engine for Silenos.

IMPORTANT: This package performs no I/O and keeps no module state.
"""

from .abilities import ability_options, build_card, parse_token, parse_tokens
from .actions import (
    ActivateAbilityAction,
    EndTurnAction,
    PlayCardAction,
    SkipDefenseAction,
    UnknownAction,
)
from .match import (
    ActionResult,
    GameConfig,
    GameState,
    PlayerInfo,
    apply_action,
    initialize_game,
    legal_actions,
    next_actor,
    perform_action,
    replay,
)
from .types import CardDatabase, CardDefinition, CardType

__all__ = [
    "ActionResult",
    "ActivateAbilityAction",
    "CardDatabase",
    "CardDefinition",
    "CardType",
    "EndTurnAction",
    "GameConfig",
    "GameState",
    "PlayCardAction",
    "PlayerInfo",
    "SkipDefenseAction",
    "UnknownAction",
    "ability_options",
    "apply_action",
    "build_card",
    "initialize_game",
    "legal_actions",
    "next_actor",
    "parse_token",
    "parse_tokens",
    "perform_action",
    "replay",
]
