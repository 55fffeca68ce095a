from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, Optional

from mafia_backend.core.models import ActionType, Phase, Role, ROLE_NIGHT_ACTION


class BasePhaseState(ABC):
    phase: Phase
    terminal: bool = False
    starts_new_round: bool = False

    @abstractmethod
    def next_phase(self) -> Phase:
        pass

    def admitted_action(self, role: Optional[Role]) -> Optional[ActionType]:
        return None

    @property
    def accepts_actions(self) -> bool:
        return False


class LobbyState(BasePhaseState):
    phase = Phase.LOBBY

    def next_phase(self) -> Phase:
        return Phase.NIGHT


class RoundStartState(BasePhaseState):
    """Display-only banner before a night; behaves exactly like the night it precedes."""

    phase = Phase.ROUND_START

    def next_phase(self) -> Phase:
        return Phase.NIGHT


class NightState(BasePhaseState):
    phase = Phase.NIGHT

    def next_phase(self) -> Phase:
        return Phase.DAY

    def admitted_action(self, role: Optional[Role]) -> Optional[ActionType]:
        if role is None:
            return None
        return ROLE_NIGHT_ACTION[role]

    @property
    def accepts_actions(self) -> bool:
        return True


class DayState(BasePhaseState):
    phase = Phase.DAY

    def next_phase(self) -> Phase:
        return Phase.VOTING


class VotingState(BasePhaseState):
    phase = Phase.VOTING
    starts_new_round = True

    def next_phase(self) -> Phase:
        return Phase.NIGHT

    def admitted_action(self, role: Optional[Role]) -> Optional[ActionType]:
        if role is None or role == Role.MODERATOR:
            return None
        return ActionType.VOTE

    @property
    def accepts_actions(self) -> bool:
        return True


class EndedState(BasePhaseState):
    phase = Phase.ENDED
    terminal = True

    def next_phase(self) -> Phase:
        return Phase.ENDED


STATE_REGISTRY: Dict[Phase, BasePhaseState] = {
    Phase.LOBBY: LobbyState(),
    Phase.ROUND_START: RoundStartState(),
    Phase.NIGHT: NightState(),
    Phase.DAY: DayState(),
    Phase.VOTING: VotingState(),
    Phase.ENDED: EndedState(),
}

ACTION_PHASES: FrozenSet[Phase] = frozenset(p for p, s in STATE_REGISTRY.items() if s.accepts_actions)


def state_for(phase: Phase) -> BasePhaseState:
    return STATE_REGISTRY[phase]
