from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class Role(str, Enum):
    MODERATOR = "moderator"
    MAFIA = "mafia"
    DOCTOR = "doctor"
    POLICE = "police"
    TERRORIST = "terrorist"
    CITIZEN = "citizen"


class Team(str, Enum):
    MAFIA = "mafia"
    CITIZEN = "citizen"
    NEUTRAL = "neutral"


class Phase(str, Enum):
    LOBBY = "lobby"
    ROUND_START = "round_start"
    NIGHT = "night"
    DAY = "day"
    VOTING = "voting"
    ENDED = "ended"


class ActionType(str, Enum):
    MAFIA_KILL = "mafia_kill"
    DOCTOR_PROTECT = "doctor_protect"
    POLICE_INVESTIGATE = "police_investigate"
    TERRORIST_BOMB = "terrorist_bomb"
    VOTE = "vote"


class Winner(str, Enum):
    MAFIA = "mafia"
    CITIZEN = "citizen"


@dataclass(slots=True)
class Participant:
    player_id: str
    nickname: str
    role: Optional[Role] = None
    is_alive: bool = True
    self_protected: bool = False
    terrorist_used: bool = False

    @property
    def is_moderator(self) -> bool:
        return self.role == Role.MODERATOR


@dataclass(slots=True)
class GameState:
    room_id: str
    creator_id: str
    phase: Phase = Phase.LOBBY
    current_round: int = 1
    winner_team: Optional[Winner] = None
    started_at: Optional[datetime] = None


@dataclass(slots=True)
class Action:
    player_id: str
    action_type: ActionType
    phase: Phase
    round_number: int
    target_player_id: Optional[str] = None
    confirmed: bool = False
    action_id: Optional[int] = None


@dataclass(slots=True)
class GameSnapshot:
    game: GameState
    players: Dict[str, Participant] = field(default_factory=dict)
    actions: List[Action] = field(default_factory=list)

    @property
    def moderator(self) -> Optional[Participant]:
        for player in self.players.values():
            if player.is_moderator:
                return player
        return None

    def current_actions(self) -> List[Action]:
        return [
            a
            for a in self.actions
            if a.phase == self.game.phase and a.round_number == self.game.current_round
        ]


ROLE_TEAM_MAP: Dict[Role, Team] = {
    Role.MAFIA: Team.MAFIA,
    Role.CITIZEN: Team.CITIZEN,
    Role.DOCTOR: Team.CITIZEN,
    Role.POLICE: Team.CITIZEN,
    Role.TERRORIST: Team.NEUTRAL,
    Role.MODERATOR: Team.NEUTRAL,
}

# Each role has at most one legal night action; roles mapped to None do not act at night.
ROLE_NIGHT_ACTION: Dict[Role, Optional[ActionType]] = {
    Role.MAFIA: ActionType.MAFIA_KILL,
    Role.DOCTOR: ActionType.DOCTOR_PROTECT,
    Role.POLICE: ActionType.POLICE_INVESTIGATE,
    Role.TERRORIST: ActionType.TERRORIST_BOMB,
    Role.CITIZEN: None,
    Role.MODERATOR: None,
}

ROLE_DISPLAY_NAMES: Dict[Role, str] = {
    Role.MODERATOR: "Moderator",
    Role.MAFIA: "Mafia",
    Role.DOCTOR: "Doctor",
    Role.POLICE: "Police",
    Role.TERRORIST: "Terrorist",
    Role.CITIZEN: "Citizen",
}


def team_of(role: Optional[Role]) -> Team:
    if role is None:
        return Team.NEUTRAL
    return ROLE_TEAM_MAP[role]
