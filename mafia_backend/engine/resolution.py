from __future__ import annotations

from typing import Dict, Iterable, List, Set

from mafia_backend.core.models import Action, ActionType, Participant, Team, team_of
from mafia_backend.core.results import InvestigationResult, NightResolution, VoteResolution


def resolve_night_actions(actions: Iterable[Action], players: Dict[str, Participant]) -> NightResolution:
    """Resolve one night's moderator-confirmed actions.

    Order matters: bombs kill unconditionally, then protections are
    collected, then mafia kills land on anyone neither protected nor
    already dead, then investigations are read off the (unchanged) roles.
    """
    by_type: Dict[ActionType, List[Action]] = {t: [] for t in ActionType}
    for action in actions:
        by_type[action.action_type].append(action)

    result = NightResolution()

    for bomb in by_type[ActionType.TERRORIST_BOMB]:
        terrorist = players.get(bomb.player_id)
        target = players.get(bomb.target_player_id or "")
        if not terrorist or not target:
            continue
        result.deaths.add(terrorist.player_id)
        result.deaths.add(target.player_id)
        result.terrorist_used.add(terrorist.player_id)
        result.bombs.append({"terrorist": terrorist.player_id, "target": target.player_id})

    for protect in by_type[ActionType.DOCTOR_PROTECT]:
        if not protect.target_player_id:
            continue
        result.protections.add(protect.target_player_id)
        if protect.target_player_id == protect.player_id:
            result.self_protected.add(protect.player_id)

    for kill in by_type[ActionType.MAFIA_KILL]:
        target_id = kill.target_player_id
        if not target_id or target_id not in players:
            continue
        if target_id in result.protections or target_id in result.deaths:
            continue
        result.deaths.add(target_id)

    for investigation in by_type[ActionType.POLICE_INVESTIGATE]:
        target = players.get(investigation.target_player_id or "")
        if not target:
            continue
        result.investigation_results.append(
            InvestigationResult(
                investigator=investigation.player_id,
                target=target.player_id,
                is_mafia=team_of(target.role) == Team.MAFIA,
            )
        )

    return result


def resolve_votes(votes: Iterable[Action]) -> VoteResolution:
    counter: Dict[str, int] = {}
    for vote in votes:
        if vote.action_type != ActionType.VOTE or not vote.target_player_id:
            continue
        counter[vote.target_player_id] = counter.get(vote.target_player_id, 0) + 1

    max_votes = max(counter.values()) if counter else 0
    if max_votes == 0:
        return VoteResolution(vote_counts=counter)

    # every participant tied at the top is eliminated
    eliminated = {pid for pid, count in counter.items() if count == max_votes}
    return VoteResolution(eliminated=eliminated, tie=len(eliminated) > 1, vote_counts=counter)


def _name(players: Dict[str, Participant], player_id: str) -> str:
    player = players.get(player_id)
    return player.nickname if player else player_id


def narrate_night(actions: Iterable[Action], result: NightResolution, players: Dict[str, Participant]) -> List[str]:
    """Public story of a resolved night, by nickname.

    Investigations stay out of it; only the investigating police may see those.
    """
    actions = list(actions)
    protectors = {
        a.target_player_id: a.player_id
        for a in actions
        if a.action_type == ActionType.DOCTOR_PROTECT and a.target_player_id
    }
    bombed = {b["target"] for b in result.bombs} | {b["terrorist"] for b in result.bombs}

    lines: List[str] = []
    told: Set[str] = set()
    for kill in actions:
        target_id = kill.target_player_id
        if kill.action_type != ActionType.MAFIA_KILL or target_id not in players or target_id in told:
            continue
        told.add(target_id)
        if target_id in bombed:
            continue
        if target_id in protectors:
            lines.append(
                f"{_name(players, protectors[target_id])} protected {_name(players, target_id)} "
                "from the Mafia's attack!"
            )
        else:
            lines.append(f"The Mafia killed {_name(players, target_id)}.")

    for bomb in result.bombs:
        lines.append(
            f"{_name(players, bomb['terrorist'])} detonated a bomb, "
            f"eliminating themselves and {_name(players, bomb['target'])}!"
        )

    if not result.deaths:
        lines.append("Nobody died tonight.")
    return lines


def narrate_votes(result: VoteResolution, players: Dict[str, Participant]) -> List[str]:
    if not result.eliminated:
        return ["No one was eliminated."]
    names = sorted(_name(players, pid) for pid in result.eliminated)
    lines = [f"Tie between {', '.join(names)}."] if result.tie else []
    lines.extend(f"{name} was voted out." for name in names)
    return lines
