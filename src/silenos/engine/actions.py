from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ActionType = Literal["PLAY_CARD", "ACTIVATE_ABILITY", "SKIP_DEFENSE", "END_TURN"]


@dataclass(frozen=True)
class PlayCardAction:
    card_id: str


@dataclass(frozen=True)
class ActivateAbilityAction:
    instance_id: str
    ability: str  # raw token text, e.g. "ATACAR 2(1)"


@dataclass(frozen=True)
class SkipDefenseAction:
    pass


@dataclass(frozen=True)
class EndTurnAction:
    pass


@dataclass(frozen=True)
class UnknownAction:
    """A request whose `type` the engine does not understand."""

    type: str


Action = PlayCardAction | ActivateAbilityAction | SkipDefenseAction | EndTurnAction | UnknownAction
