from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Mapping, Protocol, Sequence

from silenos.engine.match import (
    ActionResult,
    GameConfig,
    PlayerInfo,
    apply_action,
    initialize_game,
    next_actor,
)
from silenos.engine.serialize import action_from_dict, snapshot, state_from_document
from silenos.engine.types import CardDatabase
from silenos.services.content import ContentError, validate_json
from silenos.services.telemetry import TelemetryService

GameStatus = Literal["waiting", "active", "finished"]


class GameError(RuntimeError):
    pass


@dataclass
class GameRecord:
    id: str
    status: GameStatus
    player1: PlayerInfo
    player2: PlayerInfo | None = None
    game_state: dict[str, object] | None = None
    created_at: str = field(default_factory=lambda: datetime.now(tz=timezone.utc).isoformat())


class GameStore(Protocol):
    def get(self, game_id: str) -> GameRecord | None: ...

    def put(self, record: GameRecord) -> None: ...


class InMemoryGameStore:
    """Process-local store. Each put replaces the whole record (last write wins)."""

    def __init__(self) -> None:
        self._records: dict[str, GameRecord] = {}

    def get(self, game_id: str) -> GameRecord | None:
        return self._records.get(game_id)

    def put(self, record: GameRecord) -> None:
        self._records[record.id] = record


class GameService:
    """Creates, joins and advances stored games.

    The stored state is the document produced by `snapshot`; every action is a
    single read-apply-write against the store.
    """

    def __init__(
        self,
        store: GameStore,
        cards_db: CardDatabase,
        *,
        state_schema: object | None = None,
        telemetry: TelemetryService | None = None,
        config: GameConfig | None = None,
    ) -> None:
        self._store = store
        self.cards_db = cards_db
        self._state_schema = state_schema
        self._telemetry = telemetry
        self.config = config or GameConfig()

    def _log(self, event_type: str, payload: Mapping[str, object]) -> None:
        if self._telemetry is not None:
            self._telemetry.log(event_type, payload)

    def _check_deck(self, deck: Sequence[str]) -> None:
        size = self.config.deck_size
        if size is not None and len(deck) != size:
            raise GameError(f"Your deck must have exactly {size} cards.")

    def get_game(self, game_id: str) -> GameRecord:
        record = self._store.get(game_id)
        if record is None:
            raise GameError(f"Game not found: {game_id}")
        return record

    def create_game(self, uid: str, display_name: str, deck: Sequence[str]) -> GameRecord:
        self._check_deck(deck)
        record = GameRecord(
            id=uuid.uuid4().hex,
            status="waiting",
            player1=PlayerInfo(uid=uid, display_name=display_name, deck=tuple(deck)),
        )
        self._store.put(record)
        self._log("game_created", {"game_id": record.id, "uid": uid})
        return record

    def join_game(
        self,
        game_id: str,
        uid: str,
        display_name: str,
        deck: Sequence[str],
        *,
        seed: int | None = None,
    ) -> GameRecord:
        record = self.get_game(game_id)
        if record.status != "waiting":
            raise GameError("Game is not open for joining.")
        if record.player1.uid == uid:
            raise GameError("You cannot join your own game.")
        self._check_deck(deck)

        player2 = PlayerInfo(uid=uid, display_name=display_name, deck=tuple(deck))
        state = initialize_game(record.player1, player2, seed=seed, config=self.config)
        record.player2 = player2
        record.game_state = snapshot(state)
        record.status = "active"
        self._store.put(record)
        self._log("game_joined", {"game_id": game_id, "uid": uid})
        return record

    def send_action(self, game_id: str, uid: str, request: Mapping[str, object]) -> ActionResult:
        record = self.get_game(game_id)
        if record.game_state is None:
            raise GameError("Game has not started yet.")
        if self._state_schema is not None:
            try:
                validate_json(record.game_state, self._state_schema, context=f"game {game_id}")
            except ContentError as e:
                raise GameError(str(e)) from e

        state = state_from_document(record.game_state)
        action = action_from_dict(request)
        result = apply_action(state, uid, action, self.cards_db, self.config)
        if not result.ok:
            self._log(
                "action_rejected",
                {"game_id": game_id, "uid": uid, "type": request.get("type"), "reason": result.reason},
            )
            return result

        record.game_state = snapshot(result.state)
        if result.state.winner is not None:
            record.status = "finished"
        self._store.put(record)
        self._log("action_applied", {"game_id": game_id, "uid": uid, "type": request.get("type")})
        return result

    def resolve_timeout(self, game_id: str) -> ActionResult:
        """Act for the player the game is waiting on: decline a pending defense, otherwise end the turn."""
        record = self.get_game(game_id)
        if record.game_state is None:
            raise GameError("Game has not started yet.")
        state = state_from_document(record.game_state)
        uid = next_actor(state)
        if uid is None:
            return ActionResult(ok=False, state=state, reason="game_over")
        request = {"type": "SKIP_DEFENSE"} if state.pending_attack is not None else {"type": "END_TURN"}
        self._log("timeout", {"game_id": game_id, "uid": uid, "type": request["type"]})
        return self.send_action(game_id, uid, request)
