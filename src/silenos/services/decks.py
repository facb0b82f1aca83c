from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from silenos.engine.types import CardDatabase
from silenos.paths import get_paths
from silenos.services.content import ContentError, validate_json

DECK_SIZE = 40
MAX_COPIES = 2

_UID_RE = re.compile(r"[A-Za-z0-9_-]+")


class DeckError(RuntimeError):
    pass


@dataclass
class Deck:
    card_ids: list[str] = field(default_factory=list)
    updated_at: str | None = None

    @staticmethod
    def from_dict(d: Mapping[str, object]) -> "Deck":
        raw = d.get("cardIds", [])
        if not isinstance(raw, list):
            raise DeckError("Invalid deck: cardIds must be a list")
        updated = d.get("updatedAt")
        return Deck(
            card_ids=[c for c in raw if isinstance(c, str)],
            updated_at=updated if isinstance(updated, str) else None,
        )

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"cardIds": list(self.card_ids)}
        if self.updated_at is not None:
            out["updatedAt"] = self.updated_at
        return out

    def count(self, card_id: str) -> int:
        return self.card_ids.count(card_id)

    def counts(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for cid in self.card_ids:
            out[cid] = out.get(cid, 0) + 1
        return out


class DeckService:
    """Deck builder: one main deck per user, stored as JSON under `decks_dir`.

    `decks_dir` defaults to `userdata/decks` at the repo root.
    """

    def __init__(self, decks_dir: Path | None, cards_db: CardDatabase, schema: object | None = None) -> None:
        self.decks_dir = decks_dir if decks_dir is not None else get_paths().userdata_dir / "decks"
        self.cards_db = cards_db
        self._schema = schema

    def _path(self, uid: str) -> Path:
        if not _UID_RE.fullmatch(uid):
            raise DeckError(f"Invalid user id for a deck file: {uid!r}")
        return self.decks_dir / f"{uid}.json"

    def load(self, uid: str) -> Deck:
        path = self._path(uid)
        if not path.exists():
            return Deck()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise DeckError(f"Invalid JSON in {path}: {e}") from e
        if self._schema is not None:
            try:
                validate_json(raw, self._schema, context=str(path))
            except ContentError as e:
                raise DeckError(str(e)) from e
        if not isinstance(raw, dict):
            raise DeckError(f"{path} must be an object")
        return Deck.from_dict(raw)

    def save(self, uid: str, deck: Deck) -> None:
        deck.updated_at = datetime.now(tz=timezone.utc).isoformat()
        self.decks_dir.mkdir(parents=True, exist_ok=True)
        self._path(uid).write_text(json.dumps(deck.to_dict(), indent=2), encoding="utf-8")

    def add_card(self, deck: Deck, card_id: str) -> None:
        if card_id not in self.cards_db.cards:
            raise DeckError(f"Unknown card: {card_id}")
        if len(deck.card_ids) >= DECK_SIZE:
            raise DeckError(f"A deck cannot have more than {DECK_SIZE} cards.")
        if deck.count(card_id) >= MAX_COPIES:
            raise DeckError(f"No more than {MAX_COPIES} copies of the same card.")
        deck.card_ids.append(card_id)

    def remove_card(self, deck: Deck, card_id: str) -> None:
        # Drop the most recently added copy.
        for i in range(len(deck.card_ids) - 1, -1, -1):
            if deck.card_ids[i] == card_id:
                del deck.card_ids[i]
                return

    def clear(self, deck: Deck) -> None:
        deck.card_ids.clear()

    def validate_deck(self, deck: Deck) -> tuple[bool, str]:
        if len(deck.card_ids) != DECK_SIZE:
            return False, f"Deck must be exactly {DECK_SIZE} cards."
        for cid, n in deck.counts().items():
            if cid not in self.cards_db.cards:
                return False, f"Unknown card: {cid}"
            if n > MAX_COPIES:
                return False, f"Too many copies of {cid} ({n})."
        return True, "OK"
