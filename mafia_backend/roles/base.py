from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from mafia_backend.core.models import Action, ActionType, GameSnapshot, Participant, Role


class SkillStrategy(ABC):
    action_type: ActionType
    role: Role

    @abstractmethod
    def validate(
        self,
        snapshot: GameSnapshot,
        actor: Participant,
        action: Action,
        prior: Sequence[Action] = (),
    ) -> None:
        pass
