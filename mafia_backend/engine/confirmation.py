from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from mafia_backend.core.models import Action, Phase


@dataclass(slots=True)
class GateStatus:
    advanceable: bool
    pending_count: int = 0
    message: Optional[str] = None
    pending: List[Action] = field(default_factory=list)


def pending_confirmations(actions: Iterable[Action], phase: Phase, round_number: int) -> List[Action]:
    return [
        a
        for a in actions
        if a.phase == phase and a.round_number == round_number and not a.confirmed
    ]


def gate_status(actions: Iterable[Action], phase: Phase, round_number: int) -> GateStatus:
    # votes are created confirmed, so voting never waits on the moderator
    if phase == Phase.VOTING:
        return GateStatus(advanceable=True)

    pending = pending_confirmations(actions, phase, round_number)
    if not pending:
        return GateStatus(advanceable=True)
    return GateStatus(
        advanceable=False,
        pending_count=len(pending),
        message=(
            "Please confirm all actions before advancing phase. "
            f"{len(pending)} unconfirmed action(s) remaining."
        ),
        pending=pending,
    )
