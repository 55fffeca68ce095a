from __future__ import annotations

from typing import Dict, Optional, Sequence

from mafia_backend.core.errors import (
    CannotTargetSelf,
    InvalidTarget,
    SelfProtectLimitExceeded,
    TargetNotAlive,
    TargetRequired,
    TerroristAlreadyUsed,
)
from mafia_backend.core.models import Action, ActionType, GameSnapshot, Participant, Role
from mafia_backend.roles.base import SkillStrategy


def _assert_target(
    snapshot: GameSnapshot,
    target_id: Optional[str],
    actor_id: str,
    allow_self: bool = False,
) -> Participant:
    if not target_id:
        raise TargetRequired()
    target = snapshot.players.get(target_id)
    if not target or target.is_moderator:
        raise InvalidTarget()
    if not target.is_alive:
        raise TargetNotAlive()
    if not allow_self and target_id == actor_id:
        raise CannotTargetSelf()
    return target


# Flags are only written when a night resolves, so an action already in the
# room's log counts as the one use even before that.
def _has_self_protected(actor: Participant, prior: Sequence[Action]) -> bool:
    return actor.self_protected or any(
        a.player_id == actor.player_id
        and a.action_type == ActionType.DOCTOR_PROTECT
        and a.target_player_id == actor.player_id
        for a in prior
    )


def _has_bombed(actor: Participant, prior: Sequence[Action]) -> bool:
    return actor.terrorist_used or any(
        a.player_id == actor.player_id and a.action_type == ActionType.TERRORIST_BOMB for a in prior
    )


class MafiaKillSkill(SkillStrategy):
    action_type = ActionType.MAFIA_KILL
    role = Role.MAFIA

    def validate(
        self,
        snapshot: GameSnapshot,
        actor: Participant,
        action: Action,
        prior: Sequence[Action] = (),
    ) -> None:
        _assert_target(snapshot, action.target_player_id, actor.player_id)


class DoctorProtectSkill(SkillStrategy):
    action_type = ActionType.DOCTOR_PROTECT
    role = Role.DOCTOR

    def validate(
        self,
        snapshot: GameSnapshot,
        actor: Participant,
        action: Action,
        prior: Sequence[Action] = (),
    ) -> None:
        _assert_target(snapshot, action.target_player_id, actor.player_id, allow_self=True)
        if action.target_player_id == actor.player_id and _has_self_protected(actor, prior):
            raise SelfProtectLimitExceeded()


class PoliceInvestigateSkill(SkillStrategy):
    action_type = ActionType.POLICE_INVESTIGATE
    role = Role.POLICE

    def validate(
        self,
        snapshot: GameSnapshot,
        actor: Participant,
        action: Action,
        prior: Sequence[Action] = (),
    ) -> None:
        # no target means the police pass this night
        if action.target_player_id is None:
            return
        _assert_target(snapshot, action.target_player_id, actor.player_id)


class TerroristBombSkill(SkillStrategy):
    action_type = ActionType.TERRORIST_BOMB
    role = Role.TERRORIST

    def validate(
        self,
        snapshot: GameSnapshot,
        actor: Participant,
        action: Action,
        prior: Sequence[Action] = (),
    ) -> None:
        if _has_bombed(actor, prior):
            raise TerroristAlreadyUsed()
        _assert_target(snapshot, action.target_player_id, actor.player_id)


SKILL_REGISTRY: Dict[ActionType, SkillStrategy] = {
    ActionType.MAFIA_KILL: MafiaKillSkill(),
    ActionType.DOCTOR_PROTECT: DoctorProtectSkill(),
    ActionType.POLICE_INVESTIGATE: PoliceInvestigateSkill(),
    ActionType.TERRORIST_BOMB: TerroristBombSkill(),
}
