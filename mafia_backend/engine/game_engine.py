from __future__ import annotations

import random
from datetime import datetime
from typing import Dict, List, Optional

from mafia_backend.core.errors import (
    ActionNotFound,
    ActionsPendingConfirmation,
    GameAlreadyStarted,
    GameNotStarted,
    InvalidTransition,
    NotModerator,
    NotRoomCreator,
    PhaseMismatch,
    PlayerNotFound,
)
from mafia_backend.core.game_config import GameConfig, default_game_config
from mafia_backend.core.models import (
    Action,
    ActionType,
    GameSnapshot,
    Participant,
    Phase,
    Role,
)
from mafia_backend.core.results import PhaseTransition, WriteSet
from mafia_backend.engine.confirmation import gate_status
from mafia_backend.engine.resolution import (
    narrate_night,
    narrate_votes,
    resolve_night_actions,
    resolve_votes,
)
from mafia_backend.engine.states import state_for
from mafia_backend.engine.validator import validate_action
from mafia_backend.engine.win_conditions import evaluate_win
from mafia_backend.roles.distribution import assign_roles

NIGHT_REQUIRED_ROLES = (Role.MAFIA, Role.DOCTOR, Role.POLICE)


class GameEngine:
    """Turns commands into write-sets over a snapshot; it never mutates the snapshot."""

    def __init__(self, config: Optional[GameConfig] = None, rng: Optional[random.Random] = None) -> None:
        self.config = config or default_game_config()
        self.rng = rng

    def start_game(self, snapshot: GameSnapshot, operator_id: str) -> WriteSet:
        game = snapshot.game
        if game.phase != Phase.LOBBY:
            raise GameAlreadyStarted()
        if operator_id != game.creator_id:
            raise NotRoomCreator()

        assignments = assign_roles(list(snapshot.players), self.config.distribution, self.rng)
        write_set = WriteSet(clear_actions=True)
        for player_id, role in assignments.items():
            write_set.update_player(
                player_id,
                role=role,
                is_alive=True,
                self_protected=False,
                terrorist_used=False,
            )
        write_set.game_updates = {
            "phase": Phase.NIGHT,
            "current_round": 1,
            "winner_team": None,
            "started_at": datetime.utcnow(),
        }
        return write_set

    def prepare_action(
        self,
        snapshot: GameSnapshot,
        player_id: str,
        action_type: ActionType,
        target_id: Optional[str] = None,
        phase: Optional[Phase] = None,
        round_number: Optional[int] = None,
    ) -> Action:
        """Build the action a participant asked for and validate it against ``snapshot``.

        ``phase`` and ``round_number`` are what the client believed was
        current; when omitted the snapshot's values are used. A vote is
        validated as a replacement of the participant's earlier vote in the
        same round, so the earlier vote is left out of the prior actions.
        """
        actor = self._must_get_player(snapshot, player_id)
        game = snapshot.game
        action = Action(
            player_id=player_id,
            action_type=action_type,
            phase=phase or game.phase,
            round_number=round_number or game.current_round,
            target_player_id=target_id,
            confirmed=action_type == ActionType.VOTE,
        )

        prior = snapshot.actions
        if action_type == ActionType.VOTE:
            prior = [
                a
                for a in snapshot.actions
                if not (
                    a.player_id == player_id
                    and a.action_type == ActionType.VOTE
                    and a.round_number == game.current_round
                )
            ]
        validate_action(action, actor, snapshot, prior)
        return action

    def confirm(self, snapshot: GameSnapshot, moderator_id: str, action_id: int) -> Action:
        self.require_moderator(snapshot, moderator_id)
        game = snapshot.game
        for action in snapshot.actions:
            if action.action_id != action_id:
                continue
            if (action.phase, action.round_number) != (game.phase, game.current_round):
                raise PhaseMismatch("action belongs to another phase or round")
            return action
        raise ActionNotFound()

    def advance_phase(self, snapshot: GameSnapshot, operator_id: str) -> PhaseTransition:
        self.require_moderator(snapshot, operator_id)
        game = snapshot.game
        state = state_for(game.phase)
        if state.terminal or game.phase == Phase.LOBBY:
            raise InvalidTransition(f"cannot advance from {game.phase.value}")

        gate = gate_status(snapshot.actions, game.phase, game.current_round)
        if not gate.advanceable:
            raise ActionsPendingConfirmation(gate.message)

        write_set = WriteSet()
        transition = PhaseTransition(
            from_phase=game.phase,
            to_phase=state.next_phase(),
            round_number=game.current_round,
            write_set=write_set,
        )
        confirmed = [
            a
            for a in snapshot.actions
            if a.phase == game.phase and a.round_number == game.current_round and a.confirmed
        ]

        if game.phase == Phase.NIGHT:
            night = resolve_night_actions(confirmed, snapshot.players)
            night.narration = narrate_night(confirmed, night, snapshot.players)
            for player_id in night.deaths:
                write_set.update_player(player_id, is_alive=False)
            for player_id in night.self_protected:
                write_set.update_player(player_id, self_protected=True)
            for player_id in night.terrorist_used:
                write_set.update_player(player_id, terrorist_used=True)
            write_set.reports.append(
                {"round_number": game.current_round, "phase": Phase.NIGHT, "payload": night.to_dict()}
            )
            transition.night = night
        elif game.phase == Phase.VOTING:
            vote = resolve_votes(confirmed)
            vote.narration = narrate_votes(vote, snapshot.players)
            for player_id in vote.eliminated:
                write_set.update_player(player_id, is_alive=False)
            write_set.reports.append(
                {"round_number": game.current_round, "phase": Phase.VOTING, "payload": vote.to_dict()}
            )
            transition.vote = vote

        if transition.night is not None or transition.vote is not None:
            transition.win = evaluate_win(self._players_after(snapshot, write_set))
            if transition.win.game_over:
                transition.to_phase = Phase.ENDED
                write_set.game_updates["winner_team"] = transition.win.winner

        write_set.game_updates["phase"] = transition.to_phase
        if state.starts_new_round and transition.to_phase == Phase.NIGHT:
            write_set.game_updates["current_round"] = game.current_round + 1
        return transition

    def reset_to_lobby(self, snapshot: GameSnapshot, operator_id: str) -> WriteSet:
        self.require_moderator(snapshot, operator_id)
        write_set = WriteSet(clear_actions=True)
        for player_id in snapshot.players:
            write_set.update_player(
                player_id,
                role=None,
                is_alive=True,
                self_protected=False,
                terrorist_used=False,
            )
        write_set.game_updates = {
            "phase": Phase.LOBBY,
            "current_round": 1,
            "winner_team": None,
            "started_at": None,
        }
        return write_set

    def restart_with_same_roles(self, snapshot: GameSnapshot, operator_id: str) -> WriteSet:
        self.require_moderator(snapshot, operator_id)
        if snapshot.moderator is None:
            raise GameNotStarted("roles have not been assigned yet")
        write_set = WriteSet(clear_actions=True)
        for player_id in snapshot.players:
            write_set.update_player(player_id, is_alive=True, self_protected=False, terrorist_used=False)
        write_set.game_updates = {
            "phase": Phase.NIGHT,
            "current_round": 1,
            "winner_team": None,
            "started_at": datetime.utcnow(),
        }
        return write_set

    def missing_actions(self, snapshot: GameSnapshot) -> List[Participant]:
        game = snapshot.game
        acted = {a.player_id for a in snapshot.current_actions()}
        if game.phase == Phase.NIGHT:
            return [
                p
                for p in snapshot.players.values()
                if p.is_alive and p.role in NIGHT_REQUIRED_ROLES and p.player_id not in acted
            ]
        if game.phase == Phase.VOTING:
            return [
                p
                for p in snapshot.players.values()
                if p.is_alive and p.role is not None and not p.is_moderator and p.player_id not in acted
            ]
        return []

    @staticmethod
    def _players_after(snapshot: GameSnapshot, write_set: WriteSet) -> List[Participant]:
        players: List[Participant] = []
        for player in snapshot.players.values():
            updates: Dict[str, object] = write_set.player_updates.get(player.player_id, {})
            players.append(
                Participant(
                    player_id=player.player_id,
                    nickname=player.nickname,
                    role=player.role,
                    is_alive=bool(updates.get("is_alive", player.is_alive)),
                    self_protected=player.self_protected,
                    terrorist_used=player.terrorist_used,
                )
            )
        return players

    @staticmethod
    def require_moderator(snapshot: GameSnapshot, operator_id: str) -> None:
        moderator = snapshot.moderator
        if moderator is not None:
            if moderator.player_id != operator_id:
                raise NotModerator()
            return
        # before roles are dealt the room creator stands in for the moderator
        if operator_id != snapshot.game.creator_id:
            raise NotModerator()

    @staticmethod
    def _must_get_player(snapshot: GameSnapshot, player_id: str) -> Participant:
        player = snapshot.players.get(player_id)
        if not player:
            raise PlayerNotFound()
        return player
