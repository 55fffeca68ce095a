from __future__ import annotations

from typing import Iterable, List, Optional

from mafia_backend.core.models import Participant, Role, Team, Winner, team_of
from mafia_backend.core.results import WinResult

REASON_NO_PLAYERS = "no players alive"
REASON_MAFIA_ELIMINATED = "all Mafia eliminated"
REASON_MAFIA_MAJORITY = "Mafia equals or outnumbers other players"
REASON_CONTINUES = "game continues"


def evaluate_win(players: Iterable[Participant]) -> WinResult:
    alive = [p for p in players if p.is_alive and not p.is_moderator]
    if not alive:
        return WinResult(winner=None, reason=REASON_NO_PLAYERS)

    mafia = sum(1 for p in alive if p.role == Role.MAFIA)
    # The Terrorist is NEUTRAL in ROLE_TEAM_MAP but sits on the non-Mafia side of
    # this comparison. Keep the asymmetry; do not route it through team_of().
    others = len(alive) - mafia

    if mafia == 0:
        return WinResult(winner=Winner.CITIZEN, reason=REASON_MAFIA_ELIMINATED)
    if mafia >= others:
        return WinResult(winner=Winner.MAFIA, reason=REASON_MAFIA_MAJORITY)
    return WinResult(winner=None, reason=REASON_CONTINUES)


def winning_players(players: Iterable[Participant], winner: Optional[Winner]) -> List[Participant]:
    if winner is None:
        return []
    team = Team(winner.value)
    return [p for p in players if not p.is_moderator and team_of(p.role) == team]
