from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from mafia_backend.core.models import Phase, Winner


@dataclass(slots=True)
class InvestigationResult:
    investigator: str
    target: str
    is_mafia: bool

    def to_dict(self) -> dict:
        return {
            "investigator": self.investigator,
            "target": self.target,
            "is_mafia": self.is_mafia,
            "result": "mafia" if self.is_mafia else "non-mafia",
        }


@dataclass(slots=True)
class NightResolution:
    deaths: Set[str] = field(default_factory=set)
    protections: Set[str] = field(default_factory=set)
    investigation_results: List[InvestigationResult] = field(default_factory=list)
    bombs: List[Dict[str, str]] = field(default_factory=list)
    self_protected: Set[str] = field(default_factory=set)
    terrorist_used: Set[str] = field(default_factory=set)
    narration: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "deaths": sorted(self.deaths),
            "protections": sorted(self.protections),
            "investigations": [r.to_dict() for r in self.investigation_results],
            "bombs": list(self.bombs),
            "narration": list(self.narration),
        }


@dataclass(slots=True)
class VoteResolution:
    eliminated: Set[str] = field(default_factory=set)
    tie: bool = False
    vote_counts: Dict[str, int] = field(default_factory=dict)
    narration: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "eliminated": sorted(self.eliminated),
            "tie": self.tie,
            "vote_counts": dict(self.vote_counts),
            "narration": list(self.narration),
        }


@dataclass(slots=True)
class WinResult:
    winner: Optional[Winner]
    reason: str

    @property
    def game_over(self) -> bool:
        return self.winner is not None


@dataclass(slots=True)
class WriteSet:
    """Mutations produced by the engine; the repository applies one write-set in one transaction."""

    game_updates: Dict[str, Any] = field(default_factory=dict)
    player_updates: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    clear_actions: bool = False
    reports: List[Dict[str, Any]] = field(default_factory=list)

    def update_player(self, player_id: str, **values: Any) -> None:
        self.player_updates.setdefault(player_id, {}).update(values)


@dataclass(slots=True)
class PhaseTransition:
    from_phase: Phase
    to_phase: Phase
    round_number: int
    write_set: WriteSet
    night: Optional[NightResolution] = None
    vote: Optional[VoteResolution] = None
    win: Optional[WinResult] = None
