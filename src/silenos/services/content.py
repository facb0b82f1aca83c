from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from silenos.engine.abilities import build_card
from silenos.engine.types import CardDatabase, CardDefinition


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.path])
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_str(obj: Mapping[str, object], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if not isinstance(v, int):
        raise ContentError(f"Expected int for {key}")
    return v


def _optional_str(obj: Mapping[str, object], key: str) -> str | None:
    v = obj.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def parse_card(raw: Mapping[str, object]) -> CardDefinition:
    ctype = _require_str(raw, "type")
    if ctype not in ("ACTION", "PERMANENT"):
        raise ContentError(f"Unknown card type: {ctype}")
    return build_card(
        card_id=_require_str(raw, "id"),
        name=_require_str(raw, "name"),
        type=ctype,  # type: ignore[arg-type]
        cost=_require_int(raw, "cost"),
        power=_require_int(raw, "power"),
        text=_require_str(raw, "text"),
        image=_optional_str(raw, "image"),
    )


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def schema(self, name: str) -> object:
        return _load_json(self._schema_dir / f"{name}.schema.json")

    def load_cards_db(self) -> CardDatabase:
        cards_path = self._data_dir / "cards.json"
        raw = _load_json(cards_path)
        validate_json(raw, self.schema("cards"), context=str(cards_path))
        if not isinstance(raw, dict):
            raise ContentError("cards.json must be an object")
        raw_cards = raw.get("cards")
        if not isinstance(raw_cards, list):
            raise ContentError("cards.json.cards must be a list")

        cards: dict[str, CardDefinition] = {}
        for item in raw_cards:
            if not isinstance(item, dict):
                continue
            card = parse_card(item)
            if card.id in cards:
                raise ContentError(f"Duplicate card id: {card.id}")
            cards[card.id] = card
        return CardDatabase(cards=cards)

    def validate_all(self) -> None:
        # Load is validation (schema + parse)
        _ = self.load_cards_db()
        for name in ("game_state", "deck"):
            try:
                Draft202012Validator.check_schema(self.schema(name))
            except SchemaError as e:
                raise ContentError(f"Invalid schema {name}: {e.message}") from e
