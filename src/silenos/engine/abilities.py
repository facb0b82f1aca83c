"""Parser for the ability mini-language printed on cards.

Card text holds zero or more whitespace separated tokens of the form
``NAME[ level](cost)``, e.g. ``ATACAR 2(1)`` or ``DEFENDER(2)``. Tokens are
parsed once when the catalog is loaded; the rules engine only ever sees the
compiled `Ability` variants.
"""

from __future__ import annotations

import re

from .types import (
    Ability,
    Accumulate,
    AbilityToken,
    Attack,
    CardDefinition,
    CardType,
    Defend,
    Gain,
)

TOKEN_RE = re.compile(r"([A-ZÁÉÍÓÚÑ_]+)(?:\s*(\d+))?\s*\((\d+)\)")

# GENERAR was the name of ACUMULAR on early printings.
_ALIASES = {"GENERAR": "ACUMULAR"}


def _token_from_match(m: re.Match[str]) -> AbilityToken:
    level = m.group(2)
    return AbilityToken(
        name=_ALIASES.get(m.group(1), m.group(1)),
        level=int(level) if level is not None else None,
        cost=int(m.group(3)),
        text=m.group(0),
    )


def parse_tokens(text: str) -> list[AbilityToken]:
    """Return every ability token in `text`, in printed order."""
    return [_token_from_match(m) for m in TOKEN_RE.finditer(text)]


def parse_token(text: str) -> AbilityToken | None:
    """Parse a single submitted token. Anything else around it is rejected."""
    m = TOKEN_RE.fullmatch(text.strip())
    if m is None:
        return None
    return _token_from_match(m)


def compile_ability(token: AbilityToken, power: int) -> Ability | None:
    if token.name == "ACUMULAR":
        return Accumulate(type="ACUMULAR", amount=power, cost=token.cost)
    if token.name == "GANAR":
        return Gain(type="GANAR", amount=power, cost=token.cost)
    if token.name == "ATACAR":
        level = token.level if token.level is not None else power
        return Attack(type="ATACAR", level=level, cost=token.cost)
    if token.name == "DEFENDER":
        return Defend(type="DEFENDER", cost=token.cost)
    return None


def build_card(
    *,
    card_id: str,
    name: str,
    type: CardType,
    cost: int,
    power: int,
    text: str,
    image: str | None = None,
) -> CardDefinition:
    tokens = tuple(parse_tokens(text))
    abilities: list[Ability] = []
    for tok in tokens:
        ability = compile_ability(tok, power)
        if ability is not None:
            abilities.append(ability)
    # Action cards only ever resolve their first printed token.
    on_play = compile_ability(tokens[0], power) if tokens else None
    return CardDefinition(
        id=card_id,
        name=name,
        type=type,
        cost=cost,
        power=power,
        text=text,
        tokens=tokens,
        abilities=tuple(abilities),
        on_play=on_play,
        image=image,
    )


def ability_options(card: CardDefinition) -> list[str]:
    """Token texts a player may pick from when activating `card` on the field."""
    options: list[str] = []
    for tok in card.tokens:
        if compile_ability(tok, card.power) is None:
            continue
        options.append(tok.text)
    return options
