from pathlib import Path
from typing import Optional

import pytest

from mafia_backend.core.errors import AlreadyActed, AlreadyVoted, PlayerNotFound, RoomNotFound, StalePhase
from mafia_backend.core.models import Action, ActionType, Phase, Role, Winner
from mafia_backend.core.results import WriteSet
from mafia_backend.storage.repository import SQLiteRepository


def _make_repo(tmp_path: Path) -> SQLiteRepository:
    repo = SQLiteRepository(str(tmp_path / "db" / "mafia.db"))
    repo.create_game("ROOM01", "p1")
    for pid in ("p1", "p2", "p3"):
        repo.upsert_player("ROOM01", pid, pid.upper())
    return repo


def _action(
    player_id: str,
    action_type: ActionType,
    target_id: Optional[str],
    phase: Phase = Phase.NIGHT,
    round_number: int = 1,
    confirmed: bool = False,
) -> Action:
    return Action(
        player_id=player_id,
        action_type=action_type,
        phase=phase,
        round_number=round_number,
        target_player_id=target_id,
        confirmed=confirmed,
    )


def test_room_codes_are_unique(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)

    assert repo.create_game("ROOM01", "other") is False
    assert repo.create_game("ROOM02", "other") is True


def test_snapshot_round_trips_players_in_join_order(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    assert repo.upsert_player("ROOM01", "p2", "Renamed") is False

    snapshot = repo.load_snapshot("ROOM01")

    assert snapshot.game.phase == Phase.LOBBY
    assert snapshot.game.current_round == 1
    assert list(snapshot.players) == ["p1", "p2", "p3"]
    assert snapshot.players["p2"].nickname == "Renamed"
    assert snapshot.players["p1"].role is None


def test_missing_room(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)

    with pytest.raises(RoomNotFound):
        repo.load_snapshot("NOPE")


def test_second_pending_night_action_hits_unique_index(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    first = repo.insert_action("ROOM01", _action("p2", ActionType.MAFIA_KILL, "p3"))

    with pytest.raises(AlreadyActed):
        repo.insert_action("ROOM01", _action("p2", ActionType.MAFIA_KILL, "p1"))

    assert repo.confirm_action("ROOM01", first.action_id) is True
    repo.insert_action("ROOM01", _action("p2", ActionType.MAFIA_KILL, "p1"))
    assert len(repo.load_snapshot("ROOM01").actions) == 2


def test_duplicate_vote_hits_unique_index(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    vote = _action("p2", ActionType.VOTE, "p3", phase=Phase.VOTING, confirmed=True)
    repo.insert_action("ROOM01", vote)

    with pytest.raises(AlreadyVoted):
        repo.insert_action("ROOM01", vote)


def test_replace_vote_keeps_one_vote_per_round(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    repo.replace_vote("ROOM01", _action("p2", ActionType.VOTE, "p3", phase=Phase.VOTING, confirmed=True))
    repo.replace_vote("ROOM01", _action("p2", ActionType.VOTE, "p1", phase=Phase.VOTING, confirmed=True))
    repo.replace_vote(
        "ROOM01", _action("p2", ActionType.VOTE, "p3", phase=Phase.VOTING, round_number=2, confirmed=True)
    )

    votes = [a for a in repo.load_snapshot("ROOM01").actions if a.action_type == ActionType.VOTE]

    assert [(a.round_number, a.target_player_id) for a in votes] == [(1, "p1"), (2, "p3")]


def test_confirm_pending_only_touches_current_phase_and_round(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    repo.insert_action("ROOM01", _action("p2", ActionType.MAFIA_KILL, "p3"))
    repo.insert_action("ROOM01", _action("p3", ActionType.DOCTOR_PROTECT, "p3"))
    repo.insert_action("ROOM01", _action("p1", ActionType.MAFIA_KILL, "p3", round_number=2))

    assert repo.confirm_pending("ROOM01", Phase.NIGHT, 1) == 2
    confirmed = {(a.player_id, a.round_number): a.confirmed for a in repo.load_snapshot("ROOM01").actions}
    assert confirmed == {("p2", 1): True, ("p3", 1): True, ("p1", 2): False}


def test_apply_writes_game_players_and_reports(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    write_set = WriteSet(game_updates={"phase": Phase.NIGHT, "current_round": 1})
    write_set.update_player("p1", role=Role.MODERATOR)
    write_set.update_player("p2", role=Role.MAFIA, is_alive=False)
    write_set.reports.append({"round_number": 1, "phase": Phase.NIGHT, "payload": {"deaths": ["p2"]}})

    repo.apply("ROOM01", write_set, expected_phase=Phase.LOBBY)

    snapshot = repo.load_snapshot("ROOM01")
    assert snapshot.game.phase == Phase.NIGHT
    assert snapshot.moderator.player_id == "p1"
    assert snapshot.players["p2"].is_alive is False
    reports = repo.list_reports("ROOM01")
    assert reports[0]["phase"] == "night"
    assert reports[0]["payload"] == {"deaths": ["p2"]}


def test_apply_rejects_a_stale_phase(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    repo.apply("ROOM01", WriteSet(game_updates={"phase": Phase.DAY}), expected_phase=Phase.LOBBY)

    stale = WriteSet(game_updates={"phase": Phase.VOTING})
    stale.update_player("p2", is_alive=False)
    with pytest.raises(StalePhase):
        repo.apply("ROOM01", stale, expected_phase=Phase.LOBBY)
    with pytest.raises(StalePhase):
        repo.apply("ROOM01", stale, expected_phase=Phase.DAY, expected_round=2)

    snapshot = repo.load_snapshot("ROOM01")
    assert snapshot.game.phase == Phase.DAY
    assert snapshot.players["p2"].is_alive is True


def test_apply_is_all_or_nothing_on_unknown_player(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    write_set = WriteSet(game_updates={"phase": Phase.NIGHT, "winner_team": Winner.MAFIA})
    write_set.update_player("ghost", is_alive=False)

    with pytest.raises(PlayerNotFound):
        repo.apply("ROOM01", write_set)
    with pytest.raises(RoomNotFound):
        repo.apply("NOPE", WriteSet(game_updates={"phase": Phase.NIGHT}))

    snapshot = repo.load_snapshot("ROOM01")
    assert snapshot.game.phase == Phase.LOBBY
    assert snapshot.game.winner_team is None


def test_clear_actions_drops_actions_and_reports(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    repo.insert_action("ROOM01", _action("p2", ActionType.MAFIA_KILL, "p3"))
    repo.apply("ROOM01", WriteSet(reports=[{"round_number": 1, "phase": Phase.NIGHT, "payload": {}}]))

    repo.apply("ROOM01", WriteSet(game_updates={"phase": Phase.LOBBY}, clear_actions=True))

    assert repo.load_snapshot("ROOM01").actions == []
    assert repo.list_reports("ROOM01") == []
