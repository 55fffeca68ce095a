import random
from typing import Optional

import pytest

from mafia_backend.core.errors import (
    ActionNotFound,
    ActionsPendingConfirmation,
    GameAlreadyStarted,
    GameNotStarted,
    InsufficientPlayers,
    InvalidTransition,
    NotModerator,
    NotRoomCreator,
    PhaseMismatch,
    PlayerNotFound,
)
from mafia_backend.core.game_config import GameConfig
from mafia_backend.core.models import (
    Action,
    ActionType,
    GameSnapshot,
    GameState,
    Participant,
    Phase,
    Role,
    Winner,
)
from mafia_backend.engine.game_engine import GameEngine

ROLE_MAP = {
    "mod": Role.MODERATOR,
    "m1": Role.MAFIA,
    "m2": Role.MAFIA,
    "doc": Role.DOCTOR,
    "cop": Role.POLICE,
    "ter": Role.TERRORIST,
    "c1": Role.CITIZEN,
    "c2": Role.CITIZEN,
    "c3": Role.CITIZEN,
}


def _make_engine() -> GameEngine:
    return GameEngine(config=GameConfig(), rng=random.Random(3))


def _make_lobby(count: int = 8) -> GameSnapshot:
    game = GameState(room_id="R1", creator_id="p01")
    players = {}
    for i in range(1, count + 1):
        pid = f"p{i:02d}"
        players[pid] = Participant(player_id=pid, nickname=pid)
    return GameSnapshot(game=game, players=players)


def _make_started(phase: Phase = Phase.NIGHT, round_number: int = 1) -> GameSnapshot:
    game = GameState(room_id="R1", creator_id="c1", phase=phase, current_round=round_number)
    players = {pid: Participant(player_id=pid, nickname=pid, role=role) for pid, role in ROLE_MAP.items()}
    return GameSnapshot(game=game, players=players)


def _add(
    snapshot: GameSnapshot,
    actor_id: str,
    action_type: ActionType,
    target_id: Optional[str],
    confirmed: bool = True,
) -> None:
    snapshot.actions.append(
        Action(
            player_id=actor_id,
            action_type=action_type,
            phase=snapshot.game.phase,
            round_number=snapshot.game.current_round,
            target_player_id=target_id,
            confirmed=confirmed,
            action_id=len(snapshot.actions) + 1,
        )
    )


def test_start_game_deals_roles_and_opens_first_night() -> None:
    snapshot = _make_lobby()
    write_set = _make_engine().start_game(snapshot, "p01")

    assert write_set.clear_actions is True
    assert write_set.game_updates["phase"] == Phase.NIGHT
    assert write_set.game_updates["current_round"] == 1
    assert write_set.game_updates["winner_team"] is None
    assert set(write_set.player_updates) == set(snapshot.players)
    roles = [updates["role"] for updates in write_set.player_updates.values()]
    assert roles.count(Role.MODERATOR) == 1
    assert all(updates["is_alive"] for updates in write_set.player_updates.values())
    # the snapshot itself is untouched
    assert snapshot.game.phase == Phase.LOBBY
    assert all(p.role is None for p in snapshot.players.values())


def test_start_game_guards() -> None:
    engine = _make_engine()

    with pytest.raises(NotRoomCreator):
        engine.start_game(_make_lobby(), "p02")
    with pytest.raises(InsufficientPlayers):
        engine.start_game(_make_lobby(5), "p01")
    with pytest.raises(GameAlreadyStarted):
        engine.start_game(_make_started(), "c1")


def test_only_the_moderator_advances() -> None:
    with pytest.raises(NotModerator):
        _make_engine().advance_phase(_make_started(), "c1")


def test_unconfirmed_night_action_blocks_advance() -> None:
    snapshot = _make_started()
    _add(snapshot, "m1", ActionType.MAFIA_KILL, "c1", confirmed=False)

    with pytest.raises(ActionsPendingConfirmation) as exc_info:
        _make_engine().advance_phase(snapshot, "mod")
    assert "1 unconfirmed action(s) remaining" in exc_info.value.message


def test_night_advance_applies_deaths_and_report() -> None:
    snapshot = _make_started()
    _add(snapshot, "m1", ActionType.MAFIA_KILL, "c1")
    _add(snapshot, "m2", ActionType.MAFIA_KILL, "c2")
    _add(snapshot, "doc", ActionType.DOCTOR_PROTECT, "c2")
    _add(snapshot, "cop", ActionType.POLICE_INVESTIGATE, "m1")

    transition = _make_engine().advance_phase(snapshot, "mod")

    assert transition.from_phase == Phase.NIGHT
    assert transition.to_phase == Phase.DAY
    assert transition.night.deaths == {"c1"}
    assert transition.win.winner is None
    write_set = transition.write_set
    assert write_set.player_updates == {"c1": {"is_alive": False}}
    assert write_set.game_updates == {"phase": Phase.DAY}
    report = write_set.reports[0]
    assert report["phase"] == Phase.NIGHT
    assert report["payload"]["investigations"][0]["is_mafia"] is True


def test_night_bomb_marks_terrorist_used() -> None:
    snapshot = _make_started()
    _add(snapshot, "ter", ActionType.TERRORIST_BOMB, "m1")
    _add(snapshot, "doc", ActionType.DOCTOR_PROTECT, "doc")

    write_set = _make_engine().advance_phase(snapshot, "mod").write_set

    assert write_set.player_updates["ter"] == {"is_alive": False, "terrorist_used": True}
    assert write_set.player_updates["m1"] == {"is_alive": False}
    assert write_set.player_updates["doc"] == {"self_protected": True}


def test_day_advances_to_voting_without_resolution() -> None:
    transition = _make_engine().advance_phase(_make_started(Phase.DAY), "mod")

    assert transition.to_phase == Phase.VOTING
    assert transition.night is None and transition.vote is None
    assert transition.write_set.game_updates == {"phase": Phase.VOTING}


def test_voting_advance_eliminates_and_starts_next_round() -> None:
    snapshot = _make_started(Phase.VOTING)
    for voter in ("m1", "m2", "c1"):
        _add(snapshot, voter, ActionType.VOTE, "c2")
    _add(snapshot, "c2", ActionType.VOTE, "m1")

    transition = _make_engine().advance_phase(snapshot, "mod")

    assert transition.vote.eliminated == {"c2"}
    assert transition.to_phase == Phase.NIGHT
    assert transition.write_set.game_updates == {"phase": Phase.NIGHT, "current_round": 2}


def test_winning_vote_ends_the_game_without_new_round() -> None:
    snapshot = _make_started(Phase.VOTING, round_number=3)
    snapshot.players["m2"].is_alive = False
    for voter in ("c1", "c2", "doc"):
        _add(snapshot, voter, ActionType.VOTE, "m1")

    transition = _make_engine().advance_phase(snapshot, "mod")

    assert transition.to_phase == Phase.ENDED
    assert transition.win.winner == Winner.CITIZEN
    assert transition.write_set.game_updates == {"phase": Phase.ENDED, "winner_team": Winner.CITIZEN}


def test_mafia_night_win_skips_day() -> None:
    snapshot = _make_started()
    for pid in ("c2", "c3", "cop", "doc"):
        snapshot.players[pid].is_alive = False
    _add(snapshot, "m1", ActionType.MAFIA_KILL, "c1")

    transition = _make_engine().advance_phase(snapshot, "mod")

    # m1, m2 against ter
    assert transition.to_phase == Phase.ENDED
    assert transition.win.winner == Winner.MAFIA


def test_advance_from_lobby_or_ended_is_invalid() -> None:
    engine = _make_engine()

    with pytest.raises(InvalidTransition):
        engine.advance_phase(_make_lobby(), "p01")
    with pytest.raises(InvalidTransition):
        engine.advance_phase(_make_started(Phase.ENDED), "mod")


def test_prepare_vote_replaces_own_vote_in_round() -> None:
    snapshot = _make_started(Phase.VOTING)
    _add(snapshot, "c1", ActionType.VOTE, "m1")

    action = _make_engine().prepare_action(snapshot, "c1", ActionType.VOTE, "m2")

    assert action.confirmed is True
    assert action.target_player_id == "m2"
    assert action.round_number == 1


def test_prepare_night_action_is_unconfirmed() -> None:
    action = _make_engine().prepare_action(_make_started(), "m1", ActionType.MAFIA_KILL, "c1")

    assert action.confirmed is False
    assert action.phase == Phase.NIGHT


def test_prepare_action_for_unknown_player() -> None:
    with pytest.raises(PlayerNotFound):
        _make_engine().prepare_action(_make_started(), "ghost", ActionType.MAFIA_KILL, "c1")


def test_confirm_checks_moderator_and_action() -> None:
    snapshot = _make_started()
    _add(snapshot, "m1", ActionType.MAFIA_KILL, "c1", confirmed=False)
    engine = _make_engine()

    with pytest.raises(NotModerator):
        engine.confirm(snapshot, "m1", 1)
    with pytest.raises(ActionNotFound):
        engine.confirm(snapshot, "mod", 99)
    assert engine.confirm(snapshot, "mod", 1).player_id == "m1"


def test_confirm_rejects_action_from_another_phase_or_round() -> None:
    snapshot = _make_started(round_number=2)
    _add(snapshot, "m1", ActionType.MAFIA_KILL, "c1", confirmed=False)
    snapshot.actions[0].round_number = 1
    engine = _make_engine()

    with pytest.raises(PhaseMismatch):
        engine.confirm(snapshot, "mod", 1)

    snapshot.actions[0].round_number = 2
    snapshot.game.phase = Phase.DAY
    with pytest.raises(PhaseMismatch):
        engine.confirm(snapshot, "mod", 1)


def test_reset_to_lobby_clears_everything() -> None:
    snapshot = _make_started(Phase.DAY, round_number=4)
    snapshot.players["c1"].is_alive = False

    write_set = _make_engine().reset_to_lobby(snapshot, "mod")

    assert write_set.clear_actions is True
    assert write_set.game_updates["phase"] == Phase.LOBBY
    assert write_set.game_updates["current_round"] == 1
    assert write_set.player_updates["c1"] == {
        "role": None,
        "is_alive": True,
        "self_protected": False,
        "terrorist_used": False,
    }


def test_restart_keeps_roles() -> None:
    snapshot = _make_started(Phase.ENDED, round_number=5)
    snapshot.players["ter"].terrorist_used = True
    snapshot.players["ter"].is_alive = False

    write_set = _make_engine().restart_with_same_roles(snapshot, "mod")

    assert write_set.game_updates["phase"] == Phase.NIGHT
    assert write_set.game_updates["current_round"] == 1
    assert write_set.game_updates["winner_team"] is None
    assert "role" not in write_set.player_updates["ter"]
    assert write_set.player_updates["ter"]["terrorist_used"] is False
    assert write_set.player_updates["ter"]["is_alive"] is True


def test_restart_needs_dealt_roles() -> None:
    with pytest.raises(GameNotStarted):
        _make_engine().restart_with_same_roles(_make_lobby(), "p01")


def test_missing_actions_per_phase() -> None:
    engine = _make_engine()
    night = _make_started()
    _add(night, "m1", ActionType.MAFIA_KILL, "c1", confirmed=False)
    night.players["cop"].is_alive = False

    assert {p.player_id for p in engine.missing_actions(night)} == {"m2", "doc"}

    voting = _make_started(Phase.VOTING)
    _add(voting, "c1", ActionType.VOTE, "m1")
    missing = {p.player_id for p in engine.missing_actions(voting)}
    assert missing == set(ROLE_MAP) - {"mod", "c1"}

    assert engine.missing_actions(_make_started(Phase.DAY)) == []


def _nicknames(snapshot: GameSnapshot, **names: str) -> None:
    for pid, name in names.items():
        snapshot.players[pid].nickname = name


def test_night_report_narrates_by_nickname() -> None:
    snapshot = _make_started()
    _nicknames(snapshot, c1="Alice", c2="Bob", c3="Cy", doc="Dana", ter="Tom")
    _add(snapshot, "m1", ActionType.MAFIA_KILL, "c1")
    _add(snapshot, "m2", ActionType.MAFIA_KILL, "c2")
    _add(snapshot, "doc", ActionType.DOCTOR_PROTECT, "c2")
    _add(snapshot, "ter", ActionType.TERRORIST_BOMB, "c3")
    _add(snapshot, "cop", ActionType.POLICE_INVESTIGATE, "m1")

    transition = _make_engine().advance_phase(snapshot, "mod")

    assert transition.write_set.reports[0]["payload"]["narration"] == [
        "The Mafia killed Alice.",
        "Dana protected Bob from the Mafia's attack!",
        "Tom detonated a bomb, eliminating themselves and Cy!",
    ]
    assert transition.night.to_dict()["narration"] == transition.night.narration


def test_quiet_night_is_narrated() -> None:
    snapshot = _make_started()
    _nicknames(snapshot, c1="Alice", doc="Dana")
    _add(snapshot, "m1", ActionType.MAFIA_KILL, "c1")
    _add(snapshot, "doc", ActionType.DOCTOR_PROTECT, "c1")

    payload = _make_engine().advance_phase(snapshot, "mod").write_set.reports[0]["payload"]

    assert payload["narration"] == ["Dana protected Alice from the Mafia's attack!", "Nobody died tonight."]


def test_vote_report_narrates_tie_and_empty_round() -> None:
    snapshot = _make_started(Phase.VOTING)
    _nicknames(snapshot, m1="Max", c2="Bob")
    for voter, target in (("m1", "c2"), ("m2", "c2"), ("c1", "m1"), ("c2", "m1")):
        _add(snapshot, voter, ActionType.VOTE, target)

    payload = _make_engine().advance_phase(snapshot, "mod").write_set.reports[0]["payload"]

    assert payload["narration"] == ["Tie between Bob, Max.", "Bob was voted out.", "Max was voted out."]

    empty = _make_engine().advance_phase(_make_started(Phase.VOTING), "mod")
    assert empty.write_set.reports[0]["payload"]["narration"] == ["No one was eliminated."]
