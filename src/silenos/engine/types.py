from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

CardType = Literal["ACTION", "PERMANENT"]


@dataclass(frozen=True)
class AbilityToken:
    """One `NAME[ level](cost)` token exactly as found in card text."""

    name: str
    level: int | None
    cost: int
    text: str


@dataclass(frozen=True)
class Accumulate:
    type: Literal["ACUMULAR"]
    amount: int
    cost: int


@dataclass(frozen=True)
class Gain:
    type: Literal["GANAR"]
    amount: int
    cost: int


@dataclass(frozen=True)
class Attack:
    type: Literal["ATACAR"]
    level: int
    cost: int


@dataclass(frozen=True)
class Defend:
    type: Literal["DEFENDER"]
    cost: int


Ability = Accumulate | Gain | Attack | Defend


@dataclass(frozen=True)
class CardDefinition:
    id: str
    name: str
    type: CardType
    cost: int
    power: int
    text: str
    tokens: tuple[AbilityToken, ...] = ()
    abilities: tuple[Ability, ...] = ()
    on_play: Ability | None = None
    image: str | None = None

    def defense_costs(self) -> list[int]:
        return [a.cost for a in self.abilities if isinstance(a, Defend)]


@dataclass(frozen=True)
class CardDatabase:
    """Immutable card catalog used by the engine."""

    cards: dict[str, CardDefinition]

    def get(self, card_id: str) -> CardDefinition:
        return self.cards[card_id]

    def find(self, card_id: str) -> CardDefinition | None:
        return self.cards.get(card_id)

    def all_ids(self) -> Sequence[str]:
        return list(self.cards.keys())
