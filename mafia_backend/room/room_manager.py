from __future__ import annotations

import logging
import random
import string
import uuid
from typing import Any, Dict, List, Optional

from mafia_backend.core.errors import GameAlreadyStarted, GameRuleError, PlayerNotFound
from mafia_backend.core.game_config import GameConfig, default_game_config
from mafia_backend.core.models import (
    Action,
    ActionType,
    GameSnapshot,
    Phase,
    ROLE_DISPLAY_NAMES,
)
from mafia_backend.core.results import PhaseTransition
from mafia_backend.engine.confirmation import gate_status
from mafia_backend.engine.game_engine import GameEngine
from mafia_backend.engine.win_conditions import winning_players
from mafia_backend.storage.repository import SQLiteRepository

logger = logging.getLogger("uvicorn.error")

_ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
_ROOM_CODE_ATTEMPTS = 10


class RoomManager:
    """Each call reloads the room snapshot, runs the engine, and applies the resulting writes."""

    def __init__(
        self,
        repository: Optional[SQLiteRepository] = None,
        config: Optional[GameConfig] = None,
        engine: Optional[GameEngine] = None,
    ) -> None:
        self.config = config or default_game_config()
        self.repository = repository or SQLiteRepository(self.config.storage.db_path)
        self.engine = engine or GameEngine(config=self.config)
        for warning in self.config.warnings:
            logger.warning("[Config] %s", warning)

    def create_room(self, nickname: str) -> dict:
        creator_id = self._new_player_id()
        for _ in range(_ROOM_CODE_ATTEMPTS):
            room_id = self._new_room_id(self.config.room.code_length)
            if self.repository.create_game(room_id, creator_id):
                break
        else:
            raise RuntimeError("could not allocate a free room code")

        self.repository.upsert_player(room_id, creator_id, nickname)
        logger.info("[Room] created room_id=%s creator=%s", room_id, creator_id)
        return {"room_id": room_id, "player_id": creator_id}

    def join_room(self, room_id: str, nickname: str, player_id: Optional[str] = None) -> dict:
        snapshot = self.reload(room_id)
        if player_id and player_id in snapshot.players:
            self.repository.upsert_player(room_id, player_id, nickname)
            return {"room_id": room_id, "player_id": player_id, "rejoined": True}
        if snapshot.game.phase != Phase.LOBBY:
            raise GameAlreadyStarted()

        player_id = player_id or self._new_player_id()
        self.repository.upsert_player(room_id, player_id, nickname)
        logger.info("[Room] player joined room_id=%s player=%s", room_id, player_id)
        return {"room_id": room_id, "player_id": player_id, "rejoined": False}

    def start_game(self, room_id: str, operator_id: str) -> dict:
        snapshot = self.reload(room_id)
        write_set = self.engine.start_game(snapshot, operator_id)
        self.repository.apply(room_id, write_set, expected_phase=Phase.LOBBY)
        logger.info("[Room] game started room_id=%s players=%s", room_id, len(snapshot.players))
        return self.state(room_id, operator_id)

    def submit_action(
        self,
        room_id: str,
        player_id: str,
        action_type: ActionType,
        target_id: Optional[str] = None,
        phase: Optional[Phase] = None,
        round_number: Optional[int] = None,
    ) -> Action:
        snapshot = self.reload(room_id)
        try:
            action = self.engine.prepare_action(
                snapshot,
                player_id,
                action_type,
                target_id,
                phase=phase,
                round_number=round_number,
            )
            if action.action_type == ActionType.VOTE:
                stored = self.repository.replace_vote(room_id, action)
            else:
                stored = self.repository.insert_action(room_id, action)
        except GameRuleError as exc:
            logger.warning("[Action] rejected room_id=%s player=%s reason=%s", room_id, player_id, exc.reason)
            raise
        logger.debug(
            "[Action] accepted room_id=%s player=%s type=%s id=%s",
            room_id,
            player_id,
            stored.action_type.value,
            stored.action_id,
        )
        return stored

    def submit_vote(
        self,
        room_id: str,
        player_id: str,
        target_id: Optional[str],
        round_number: Optional[int] = None,
    ) -> Action:
        return self.submit_action(
            room_id,
            player_id,
            ActionType.VOTE,
            target_id,
            phase=Phase.VOTING,
            round_number=round_number,
        )

    def confirm_action(self, room_id: str, moderator_id: str, action_id: int) -> Action:
        snapshot = self.reload(room_id)
        action = self.engine.confirm(snapshot, moderator_id, action_id)
        if not action.confirmed:
            self.repository.confirm_action(room_id, action_id)
            action.confirmed = True
        return action

    def confirm_all(self, room_id: str, moderator_id: str) -> int:
        snapshot = self.reload(room_id)
        self.engine.require_moderator(snapshot, moderator_id)
        return self.repository.confirm_pending(room_id, snapshot.game.phase, snapshot.game.current_round)

    def advance_phase(self, room_id: str, operator_id: str) -> PhaseTransition:
        snapshot = self.reload(room_id)
        transition = self.engine.advance_phase(snapshot, operator_id)
        self.repository.apply(
            room_id,
            transition.write_set,
            expected_phase=snapshot.game.phase,
            expected_round=snapshot.game.current_round,
        )
        logger.info(
            "[Phase] room_id=%s round=%s %s -> %s deaths=%s eliminated=%s winner=%s",
            room_id,
            transition.round_number,
            transition.from_phase.value,
            transition.to_phase.value,
            sorted(transition.night.deaths) if transition.night else [],
            sorted(transition.vote.eliminated) if transition.vote else [],
            transition.win.winner.value if transition.win and transition.win.winner else None,
        )
        return transition

    def reset_to_lobby(self, room_id: str, operator_id: str) -> dict:
        snapshot = self.reload(room_id)
        write_set = self.engine.reset_to_lobby(snapshot, operator_id)
        self.repository.apply(room_id, write_set)
        logger.info("[Room] reset to lobby room_id=%s", room_id)
        return self.state(room_id, operator_id)

    def restart_with_same_roles(self, room_id: str, operator_id: str) -> dict:
        snapshot = self.reload(room_id)
        write_set = self.engine.restart_with_same_roles(snapshot, operator_id)
        self.repository.apply(room_id, write_set)
        logger.info("[Room] restarted with same roles room_id=%s", room_id)
        return self.state(room_id, operator_id)

    def reload(self, room_id: str) -> GameSnapshot:
        return self.repository.load_snapshot(room_id)

    def pending_confirmations(self, room_id: str) -> dict:
        snapshot = self.reload(room_id)
        game = snapshot.game
        gate = gate_status(snapshot.actions, game.phase, game.current_round)
        return {
            "phase": game.phase.value,
            "round_no": game.current_round,
            "advanceable": gate.advanceable,
            "pending_count": gate.pending_count,
            "message": gate.message,
            "pending": [self.action_view(a) for a in gate.pending],
        }

    def missing_actions(self, room_id: str) -> List[dict]:
        snapshot = self.reload(room_id)
        return [
            {"player_id": p.player_id, "nickname": p.nickname}
            for p in self.engine.missing_actions(snapshot)
        ]

    def state(self, room_id: str, viewer_id: Optional[str] = None) -> dict:
        snapshot = self.reload(room_id)
        game = snapshot.game
        viewer = snapshot.players.get(viewer_id or "")
        reveal_all = game.phase == Phase.ENDED or bool(viewer and viewer.is_moderator)

        players = []
        for p in snapshot.players.values():
            show_role = reveal_all or p.player_id == viewer_id
            players.append(
                {
                    "player_id": p.player_id,
                    "nickname": p.nickname,
                    "alive": p.is_alive,
                    "role": p.role.value if show_role and p.role else None,
                }
            )

        state: Dict[str, Any] = {
            "room_id": game.room_id,
            "creator_id": game.creator_id,
            "started": game.phase != Phase.LOBBY,
            "phase": game.phase.value,
            "round_no": game.current_round,
            "winner": game.winner_team.value if game.winner_team else None,
            "players": players,
            "warnings": list(self.config.warnings),
        }
        if viewer and viewer.is_moderator:
            state["actions"] = [self.action_view(a) for a in snapshot.current_actions()]
        if game.winner_team:
            state["winning_players"] = [
                p.player_id for p in winning_players(snapshot.players.values(), game.winner_team)
            ]
        return state

    def reports(self, room_id: str, viewer_id: str) -> List[dict]:
        snapshot = self.reload(room_id)
        viewer = snapshot.players.get(viewer_id)
        if viewer is None:
            raise PlayerNotFound()

        rows = self.repository.list_reports(room_id)
        for row in rows:
            payload = row["payload"]
            for pid in payload.get("eliminated", []):
                player = snapshot.players.get(pid)
                if player and player.role:
                    payload.setdefault("eliminated_roles", {})[pid] = ROLE_DISPLAY_NAMES[player.role]
            # investigation results are private to the investigator
            if "investigations" in payload and not viewer.is_moderator:
                payload["investigations"] = [
                    item for item in payload["investigations"] if item.get("investigator") == viewer_id
                ]
        return rows

    @staticmethod
    def action_view(action: Action) -> dict:
        return {
            "action_id": action.action_id,
            "player_id": action.player_id,
            "action_type": action.action_type.value,
            "target_player_id": action.target_player_id,
            "phase": action.phase.value,
            "round_no": action.round_number,
            "confirmed": action.confirmed,
        }

    @staticmethod
    def _new_room_id(length: int) -> str:
        return "".join(random.choices(_ROOM_CODE_ALPHABET, k=length))

    @staticmethod
    def _new_player_id() -> str:
        return uuid.uuid4().hex
