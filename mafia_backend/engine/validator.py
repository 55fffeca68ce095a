from __future__ import annotations

from typing import Iterable, Optional

from mafia_backend.core.errors import (
    AlreadyActed,
    AlreadyVoted,
    CannotVoteOutModerator,
    DeadActor,
    InvalidVoteTarget,
    NoActionsThisPhase,
    PhaseMismatch,
    TargetNotAlive,
    WrongActionForRole,
)
from mafia_backend.core.models import Action, ActionType, GameSnapshot, Participant, Phase
from mafia_backend.engine.states import state_for
from mafia_backend.roles.skills import SKILL_REGISTRY


def validate_action(
    action: Action,
    actor: Participant,
    snapshot: GameSnapshot,
    prior_actions: Optional[Iterable[Action]] = None,
) -> None:
    """Raise the first applicable GameRuleError, or return None when ``action`` may be persisted.

    Nothing is mutated here; persisting the action is the caller's job.
    """
    game = snapshot.game
    prior = list(snapshot.actions if prior_actions is None else prior_actions)

    if not actor.is_alive:
        raise DeadActor()

    if action.phase != game.phase:
        raise PhaseMismatch()
    if action.round_number != game.current_round:
        raise PhaseMismatch("action round does not match the current round")

    state = state_for(game.phase)
    if not state.accepts_actions:
        raise NoActionsThisPhase()

    if game.phase == Phase.NIGHT:
        _validate_night_action(action, actor, snapshot, prior)
    else:
        _validate_vote(action, actor, snapshot, prior)


def _validate_night_action(
    action: Action,
    actor: Participant,
    snapshot: GameSnapshot,
    prior: list[Action],
) -> None:
    game = snapshot.game
    pending = [
        a
        for a in prior
        if a.player_id == actor.player_id
        and a.phase == Phase.NIGHT
        and a.round_number == game.current_round
        and a.action_type != ActionType.VOTE
        and not a.confirmed
    ]
    if pending:
        raise AlreadyActed()

    expected = state_for(Phase.NIGHT).admitted_action(actor.role)
    if expected is None or action.action_type != expected:
        raise WrongActionForRole()

    SKILL_REGISTRY[expected].validate(snapshot, actor, action, prior)


def _validate_vote(
    action: Action,
    actor: Participant,
    snapshot: GameSnapshot,
    prior: list[Action],
) -> None:
    game = snapshot.game
    already = any(
        a.player_id == actor.player_id
        and a.action_type == ActionType.VOTE
        and a.round_number == game.current_round
        for a in prior
    )
    if already:
        raise AlreadyVoted()

    if action.action_type != ActionType.VOTE or state_for(Phase.VOTING).admitted_action(actor.role) is None:
        raise WrongActionForRole("only living non-moderator players can vote")

    target = snapshot.players.get(action.target_player_id or "")
    if target is None:
        raise InvalidVoteTarget()
    # moderator check precedes liveness
    if target.is_moderator:
        raise CannotVoteOutModerator()
    if not target.is_alive:
        raise TargetNotAlive("cannot vote for a dead player")
